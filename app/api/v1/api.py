from fastapi import APIRouter
from app.api.v1 import ai, auth, data, history, payments, utility

api_router = APIRouter()

# Include all v1 routers
api_router.include_router(auth.router)
api_router.include_router(data.router)
api_router.include_router(ai.router)
api_router.include_router(history.router)
api_router.include_router(payments.router)
api_router.include_router(utility.router)
