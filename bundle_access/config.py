import os
from dataclasses import dataclass, field

DEV_ENV_NAMES = {'development', 'dev', 'local', 'test'}
TRUTHY_VALUES = {'1', 'true', 'yes', 'on'}


def env_flag(name, default='0'):
    return str(os.getenv(name, default) or '').strip().lower() in TRUTHY_VALUES


def safe_int_env(name, default=0, minimum=1, maximum=100000):
    raw = str(os.getenv(name, str(default)) or '').strip()
    try:
        value = int(raw)
    except ValueError:
        value = default
    return max(minimum, min(maximum, value))


def safe_float_env(name, default=0.0):
    raw = str(os.getenv(name, '') or '').strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return min(max(value, 0.0), 1.0)


def runtime_environment():
    return (
        os.getenv('SENTRY_ENVIRONMENT')
        or os.getenv('FLASK_ENV')
        or os.getenv('ENV')
        or ('production' if os.getenv('RENDER') else 'development')
    ).strip().lower()


def is_dev_environment():
    return runtime_environment() in DEV_ENV_NAMES


def parse_cors_allowed_origins():
    raw = str(os.getenv('CORS_ALLOWED_ORIGINS', '') or '')
    return frozenset(origin.strip().lower().rstrip('/') for origin in raw.split(',') if origin.strip())


@dataclass(frozen=True)
class AppConfig:
    """Central config object, read once from the environment."""

    flask_secret_key: str = field(default_factory=lambda: os.getenv('FLASK_SECRET_KEY', ''))
    log_level: str = field(default_factory=lambda: (os.getenv('LOG_LEVEL', 'INFO') or 'INFO').strip().upper())
    sentry_dsn: str = field(default_factory=lambda: (os.getenv('SENTRY_DSN_BACKEND', '') or '').strip())
    sentry_environment: str = field(default_factory=lambda: (os.getenv('SENTRY_ENVIRONMENT', os.getenv('FLASK_ENV', 'production')) or 'production').strip())
    sentry_release: str = field(default_factory=lambda: (os.getenv('SENTRY_RELEASE', 'bundle-access') or 'bundle-access').strip())
    sentry_traces_sample_rate: float = field(default_factory=lambda: safe_float_env('SENTRY_TRACES_SAMPLE_RATE', 0.0))
    stripe_secret_key: str = field(default_factory=lambda: (os.getenv('STRIPE_SECRET_KEY', '') or '').strip())
    stripe_webhook_secret: str = field(default_factory=lambda: (os.getenv('STRIPE_WEBHOOK_SECRET', '') or '').strip())
    public_base_url: str = field(default_factory=lambda: (os.getenv('PUBLIC_BASE_URL', '') or '').strip().rstrip('/'))
    debug_endpoints_enabled: bool = field(default_factory=lambda: env_flag('DEBUG_ENDPOINTS_ENABLED') or is_dev_environment())
    cors_allowed_origins: frozenset = field(default_factory=parse_cors_allowed_origins)
    checkout_rate_limit_window_seconds: int = field(default_factory=lambda: safe_int_env('CHECKOUT_RATE_LIMIT_WINDOW_SECONDS', 600, minimum=10, maximum=86400))
    checkout_rate_limit_max_requests: int = field(default_factory=lambda: safe_int_env('CHECKOUT_RATE_LIMIT_MAX_REQUESTS', 6, minimum=1, maximum=100))
    rate_limit_firestore_enabled: bool = field(default_factory=lambda: env_flag('RATE_LIMIT_FIRESTORE_ENABLED', '1'))


def load_config() -> AppConfig:
    config = AppConfig()
    if not is_dev_environment() and not config.flask_secret_key.strip():
        raise RuntimeError('FLASK_SECRET_KEY must be set in non-development environments.')
    return config
