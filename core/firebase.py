import firebase_admin
from firebase_admin import credentials, auth as firebase_auth
import json
import logging
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)


def initialize_firebase():
    """Initialize the Firebase Admin SDK once; later calls reuse the default app."""
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass

    # Method 1: Service Account Key from Environment Variable (Recommended for production)
    service_account_key_json = os.getenv('FIREBASE_SERVICE_ACCOUNT_KEY')
    if service_account_key_json:
        try:
            cred = credentials.Certificate(json.loads(service_account_key_json))
            logger.info("Firebase Admin SDK initialized with Service Account Key from environment variable.")
            return firebase_admin.initialize_app(cred)
        except (json.JSONDecodeError, ValueError) as e:
            logger.error("Error parsing FIREBASE_SERVICE_ACCOUNT_KEY: %s", e)

    # Method 2: Service Account Key File (for local development only)
    service_account_key_path = os.getenv('FIREBASE_SERVICE_ACCOUNT_KEY_PATH')
    if service_account_key_path and os.path.exists(service_account_key_path):
        logger.info("Firebase Admin SDK initialized with Service Account Key from file path.")
        return firebase_admin.initialize_app(credentials.Certificate(service_account_key_path))

    # Method 3: GOOGLE_APPLICATION_CREDENTIALS / Application Default Credentials
    logger.info("Firebase Admin SDK initialized with Application Default Credentials.")
    return firebase_admin.initialize_app()


def verify_id_token(token: str) -> dict:
    initialize_firebase()
    return firebase_auth.verify_id_token(token)
