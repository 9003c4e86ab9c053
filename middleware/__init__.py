"""
Middleware components for the follow-up diagnosis API
"""

from .security import RequestLoggingMiddleware, SecurityHeadersMiddleware

__all__ = ["RequestLoggingMiddleware", "SecurityHeadersMiddleware"]
