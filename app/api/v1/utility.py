from fastapi import APIRouter, Depends
from datetime import datetime
from app.api.deps import require_auth
from app.core.config import get_settings
from app.schemas.user import VerifiedIdentity
import logging
import os
import platform
import time

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/utility", tags=["Utility"])

STARTED_AT = time.monotonic()


@router.post("/health-check")
async def health_check():
    now = datetime.utcnow().isoformat()
    return {
        "success": True,
        "data": {
            "status": "healthy",
            "timestamp": now,
            "serverTime": now
        }
    }


@router.post("/refresh-cache")
async def refresh_cache(identity: VerifiedIdentity = Depends(require_auth("admin"))):
    """Drop cached settings so the next lookup re-reads the environment."""
    logger.info(f"Cache refresh requested by admin {identity.uid}")
    get_settings.cache_clear()
    return {
        "success": True,
        "data": {
            "message": "Cache refreshed successfully",
            "timestamp": datetime.utcnow().isoformat()
        }
    }


@router.post("/system-info")
async def get_system_info(identity: VerifiedIdentity = Depends(require_auth("admin"))):
    return {
        "success": True,
        "data": {
            "platform": platform.system().lower(),
            "arch": platform.machine(),
            "python": platform.python_version(),
            "uptime": int(time.monotonic() - STARTED_AT),
            "cpu": {"cores": os.cpu_count()},
            "env": get_settings().ENVIRONMENT
        }
    }
