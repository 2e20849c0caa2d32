import uuid

import sentry_sdk
from dotenv import load_dotenv
from flask import Flask, g, jsonify, request

from .blueprints import creator_bp, debug_bp, migration_bp, payments_bp, purchases_bp
from .config import load_config
from .extensions import init_extensions
from .logging_config import configure_logging


def create_app(config=None):
    """App factory entrypoint.

    Loads ``.env``, reads the config, initialises Firebase/Stripe/Sentry and
    registers the API blueprints. Pass ``config`` to bypass the environment
    (tests do this).
    """
    if config is None:
        load_dotenv()
        config = load_config()
    configure_logging(config.log_level)

    app = Flask(__name__)
    app.secret_key = config.flask_secret_key or None
    init_extensions(app, config)

    for blueprint in (creator_bp, purchases_bp, migration_bp, payments_bp, debug_bp):
        app.register_blueprint(blueprint)

    def apply_cors_headers(response):
        origin = str(request.headers.get('Origin', '') or '').strip()
        if not origin or not request.path.startswith('/api/'):
            return response
        if origin.lower().rstrip('/') not in config.cors_allowed_origins:
            return response
        response.headers['Access-Control-Allow-Origin'] = origin
        response.headers['Vary'] = 'Origin'
        response.headers['Access-Control-Allow-Headers'] = 'Authorization, Content-Type'
        response.headers['Access-Control-Allow-Methods'] = 'GET, POST, PUT, PATCH, DELETE, OPTIONS'
        return response

    @app.before_request
    def handle_api_options_preflight():
        if request.method == 'OPTIONS' and request.path.startswith('/api/'):
            return apply_cors_headers(app.make_default_options_response())

    @app.before_request
    def attach_request_context():
        request_id = str(request.headers.get('X-Request-ID', '') or '').strip()[:120] or uuid.uuid4().hex
        g.request_id = request_id
        if config.sentry_dsn:
            sentry_sdk.set_tag('request.id', request_id)
            sentry_sdk.set_tag('route.path', request.path)
            sentry_sdk.set_tag('route.method', request.method)
            sentry_sdk.set_tag('route.auth_header_present', 'true' if request.headers.get('Authorization') else 'false')

    @app.after_request
    def attach_response_context(response):
        request_id = str(getattr(g, 'request_id', '') or '').strip()
        if request_id:
            response.headers['X-Request-ID'] = request_id
        return apply_cors_headers(response)

    @app.route('/healthz')
    def healthz():
        return jsonify({'status': 'ok'}), 200

    return app
