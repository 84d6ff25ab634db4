"""Request-handling helpers for FastAPI/Starlette backends."""

from .core.config import Config, configure_logging
from .core.middleware import register
from .services import *  # noqa: F401,F403
from .services import __all__ as _services_all

__version__ = "0.1.0"

__all__ = ["Config", "configure_logging", "register", *_services_all]
