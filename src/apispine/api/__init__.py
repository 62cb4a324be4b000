"""
HTTP transport for api-spine (FastAPI).

Usage::

    from apispine.api import create_app
    app = create_app(registry)
"""

from apispine.api.app import create_app
from apispine.api.settings import ApiSettings, get_settings

__all__ = ["create_app", "ApiSettings", "get_settings"]
