"""Authentication utility helpers."""


def extract_bearer_token(request):
    auth_header = request.headers.get('Authorization', '')
    if not auth_header.startswith('Bearer '):
        return ''
    return auth_header.split('Bearer ', 1)[1].strip()


def verify_id_token(token, auth_module, logger):
    """Return decoded Firebase token dict, or None when invalid/missing."""
    if not token:
        return None
    try:
        return auth_module.verify_id_token(token)
    except Exception as exc:
        if logger is not None:
            logger.info(f"Token verification failed: {exc}")
        return None


def verify_firebase_token(request, auth_module, logger, *, allow_body_token=False):
    token = extract_bearer_token(request)
    if not token and allow_body_token:
        body = request.get_json(silent=True) or {}
        token = str(body.get('idToken') or '').strip() if isinstance(body, dict) else ''
    return verify_id_token(token, auth_module, logger)
