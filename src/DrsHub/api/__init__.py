"""HTTP surface: framework-free handlers and the FastAPI app."""

from .app import create_app
from .handlers import FORCE_ACCESS_URL_HEADER, RequestHandlers, parse_force_access_url

__all__ = [
    "FORCE_ACCESS_URL_HEADER",
    "RequestHandlers",
    "create_app",
    "parse_force_access_url",
]
