import json
import logging
import os
from functools import lru_cache

import firebase_admin
from dotenv import load_dotenv
from firebase_admin import auth as firebase_auth, credentials, firestore

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def initialize_firebase() -> firebase_admin.App:
    """Initialize Firebase Admin SDK on first use, resolving credentials from the environment"""

    # Method 1: Service Account Key from Environment Variable (Recommended for production)
    service_account_key_json = os.getenv("FIREBASE_SERVICE_ACCOUNT_KEY")
    if service_account_key_json:
        try:
            service_account_info = json.loads(service_account_key_json)
            app = firebase_admin.initialize_app(credentials.Certificate(service_account_info))
            logger.info("Firebase Admin SDK initialized with Service Account Key from environment variable.")
            return app
        except ValueError as e:
            logger.error(f"Error parsing FIREBASE_SERVICE_ACCOUNT_KEY: {e}")

    # Method 2: Service Account Key File (for local development only)
    service_account_key_path = os.getenv("FIREBASE_SERVICE_ACCOUNT_KEY_PATH")
    if service_account_key_path and os.path.exists(service_account_key_path):
        app = firebase_admin.initialize_app(credentials.Certificate(service_account_key_path))
        logger.info("Firebase Admin SDK initialized with Service Account Key from file path.")
        return app

    # Method 3: GOOGLE_APPLICATION_CREDENTIALS / Application Default Credentials
    app = firebase_admin.initialize_app()
    logger.info("Firebase Admin SDK initialized with Application Default Credentials.")
    return app


def verify_id_token(token: str) -> dict:
    return firebase_auth.verify_id_token(token, app=initialize_firebase())


def get_firestore_client():
    return firestore.client(app=initialize_firebase())
