"""Process-wide service handles shared by the API handlers.

API service functions receive this module as ``app_ctx`` so tests can swap
``db``, ``stripe`` or ``verify_firebase_token`` with monkeypatch.
"""

import json
import logging
import os

import firebase_admin
import stripe
from firebase_admin import auth, credentials, firestore
from flask import jsonify

from bundle_access.config import AppConfig
from bundle_access.services import auth_service, rate_limit_service

logger = logging.getLogger('bundle_access')

config = AppConfig()
db = None
firebase_init_error = ''

rate_limiter = rate_limit_service.RateLimiter(firestore)

ACCESS_DENIED_MESSAGE = "You don't have access to this content. Please purchase it first."
RETRYABLE_MESSAGE = 'Could not load purchase data right now. Please retry.'


def init_firebase():
    """Initialise firebase-admin once; leaves ``db`` as None when credentials are missing."""
    global db, firebase_init_error
    if db is not None:
        return db
    try:
        if os.path.exists('firebase-credentials.json'):
            cred = credentials.Certificate('firebase-credentials.json')
        else:
            firebase_creds_raw = (os.getenv('FIREBASE_CREDENTIALS', '') or '').strip()
            if not firebase_creds_raw:
                raise ValueError("FIREBASE_CREDENTIALS is not set and firebase-credentials.json was not found.")
            cred = credentials.Certificate(json.loads(firebase_creds_raw))
        if not firebase_admin._apps:
            firebase_admin.initialize_app(cred)
        db = firestore.client()
        firebase_init_error = ''
    except Exception as e:
        firebase_init_error = str(e)
        logger.info(f"⚠️ Firebase initialization skipped: {firebase_init_error}")
    return db


def init_stripe(app_config):
    stripe.api_key = app_config.stripe_secret_key or None
    if not app_config.stripe_secret_key:
        logger.info("⚠️ STRIPE_SECRET_KEY not set; checkout and verification are disabled.")


def verify_firebase_token(request, allow_body_token=False):
    return auth_service.verify_firebase_token(request, auth, logger, allow_body_token=allow_body_token)


def check_rate_limit(key, limit, window_seconds):
    shared_db = db if config.rate_limit_firestore_enabled else None
    return rate_limiter.check(key, limit, window_seconds, db=shared_db)


def build_rate_limited_response(message, retry_after):
    response = jsonify({'error': message, 'retry_after': int(retry_after)})
    response.status_code = 429
    response.headers['Retry-After'] = str(int(retry_after))
    return response


def error_response(message, status, **extra):
    payload = {'success': False, 'error': message}
    payload.update(extra)
    return jsonify(payload), status


def store_unavailable_response(exc):
    logger.error(f"❌ Store unavailable: {exc}")
    return error_response(RETRYABLE_MESSAGE, 503, retryable=True, actions=['retry', 'debug'])
