import json
import logging

NOISY_LOGGERS = ('google', 'urllib3', 'stripe')


def configure_logging(level: str = 'INFO') -> None:
    """Idempotent logging setup for app-factory flow and maintenance scripts."""
    root = logging.getLogger()
    if not root.handlers:
        numeric_level = getattr(logging, str(level or 'INFO').upper(), logging.INFO)
        logging.basicConfig(
            level=numeric_level,
            format='%(asctime)s %(levelname)s %(name)s %(message)s',
        )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def log_event(logger, level, event, **fields):
    """Emit one structured JSON line for machine-readable events."""
    payload = {'event': event}
    for key, value in fields.items():
        payload[str(key)] = value
    logger.log(level, json.dumps(payload, ensure_ascii=True, default=str))
