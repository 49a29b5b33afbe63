"""
Firebase Configuration Module

Lazily initialises the Firebase Admin SDK and hands out a Firestore client.

Functions:
    get_db: Return the Firestore client, or None when credentials are missing.
    set_db: Inject a client (tests, scripts with their own app).
"""

import logging

import firebase_admin
from firebase_admin import credentials, firestore

from groupledger.config.settings import settings

logger = logging.getLogger(__name__)

_db = None


def get_db():
    """
    Get the Firestore client.

    Returns:
        The Firestore client, or None if no credentials are configured
        or the Firebase app could not be initialised.
    """
    global _db
    if _db is not None:
        return _db

    if not settings.FIREBASE_CREDENTIALS:
        logger.warning("FIREBASE_CREDENTIALS is not set; Firestore is unavailable")
        return None

    try:
        app = firebase_admin.get_app()
    except ValueError:
        options = {"projectId": settings.FIREBASE_PROJECT_ID} if settings.FIREBASE_PROJECT_ID else None
        try:
            cred = credentials.Certificate(settings.FIREBASE_CREDENTIALS)
        except (OSError, ValueError) as e:
            logger.error("Could not load Firebase credentials from %s: %s",
                         settings.FIREBASE_CREDENTIALS, e)
            return None
        app = firebase_admin.initialize_app(cred, options)

    _db = firestore.client(app)
    logger.info("Firestore client initialised")
    return _db


def set_db(client) -> None:
    """Replace the cached Firestore client (pass None to reset)."""
    global _db
    _db = client
