"""HTTP middleware for the api-spine adapter."""

from apispine.api.middleware.request_id import RequestIDMiddleware

__all__ = ["RequestIDMiddleware"]
