from .creator import creator_bp
from .purchases import purchases_bp
from .migration import migration_bp
from .payments import payments_bp
from .debug import debug_bp

__all__ = ['creator_bp', 'purchases_bp', 'migration_bp', 'payments_bp', 'debug_bp']
