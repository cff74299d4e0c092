import firebase_admin
from firebase_admin import credentials
from app.core.config import Settings
import json
import logging
import os

logger = logging.getLogger(__name__)


def _load_credential(settings: Settings):
    """Pick the first credential source that is configured."""
    # 1. JSON string in the environment (best for cloud deployments)
    if settings.FIREBASE_CREDENTIALS_JSON:
        try:
            return credentials.Certificate(json.loads(settings.FIREBASE_CREDENTIALS_JSON))
        except Exception as e:
            logger.error(f"Failed to load Firebase credentials from FIREBASE_CREDENTIALS_JSON: {e}")

    # 2. Service account file
    if settings.FIREBASE_CREDENTIALS_PATH:
        path = settings.FIREBASE_CREDENTIALS_PATH
        possible_paths = [path, os.path.join(os.getcwd(), path)]
        for candidate in possible_paths:
            if os.path.exists(candidate):
                logger.info(f"Using Firebase service account from: {candidate}")
                return credentials.Certificate(candidate)
        logger.warning(f"Firebase credentials file not found. Tried: {possible_paths}")

    # 3. Individual service account fields
    if settings.FIREBASE_PROJECT_ID and settings.FIREBASE_CLIENT_EMAIL and settings.FIREBASE_PRIVATE_KEY:
        return credentials.Certificate({
            "type": "service_account",
            "project_id": settings.FIREBASE_PROJECT_ID,
            "client_email": settings.FIREBASE_CLIENT_EMAIL,
            "private_key": settings.FIREBASE_PRIVATE_KEY.replace("\\n", "\n"),
            "token_uri": "https://oauth2.googleapis.com/token",
        })

    # 4. Application default credentials (Google Cloud environments)
    return credentials.ApplicationDefault()


def init_firebase(settings: Settings) -> bool:
    """Initialize Firebase Admin SDK if not already initialized."""
    if firebase_admin._apps:
        return True

    if settings.USE_FIREBASE_EMULATOR:
        # The Admin SDK routes token verification to the emulator when this is set.
        os.environ["FIREBASE_AUTH_EMULATOR_HOST"] = settings.FIREBASE_AUTH_EMULATOR_HOST

    try:
        options = {"projectId": settings.FIREBASE_PROJECT_ID} if settings.FIREBASE_PROJECT_ID else None
        firebase_admin.initialize_app(_load_credential(settings), options)
    except Exception as e:
        logger.warning(f"Firebase Admin SDK not initialized: {e}")
        return False

    if settings.USE_FIREBASE_EMULATOR:
        logger.info(f"Connected to Firebase Auth emulator at {settings.FIREBASE_AUTH_EMULATOR_HOST}")
    else:
        logger.info("Firebase Admin SDK initialized")
    return True
