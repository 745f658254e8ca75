"""
Application wiring: lifespan, CORS, middlewares and error handlers.
"""

from .cors import configure_cors
from .errors import register_error_handlers
from .lifespan import lifespan
from .middlewares import register_middlewares

__all__ = [
    "configure_cors",
    "lifespan",
    "register_error_handlers",
    "register_middlewares",
]
