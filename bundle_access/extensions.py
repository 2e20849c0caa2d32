import sentry_sdk
from sentry_sdk.integrations.flask import FlaskIntegration

from bundle_access import runtime


def init_extensions(app, config) -> None:
    """Wire process-wide services (Firebase, Stripe, Sentry) for the app factory."""
    runtime.config = config
    runtime.init_firebase()
    runtime.init_stripe(config)

    if config.sentry_dsn:
        sentry_sdk.init(
            dsn=config.sentry_dsn,
            integrations=[FlaskIntegration()],
            traces_sample_rate=config.sentry_traces_sample_rate,
            send_default_pii=False,
            environment=config.sentry_environment,
            release=config.sentry_release,
        )

    app.extensions.setdefault('bundle_access', {})
    app.extensions['bundle_access']['firebase_ready'] = runtime.db is not None
    app.extensions['bundle_access']['sentry_enabled'] = bool(config.sentry_dsn)
