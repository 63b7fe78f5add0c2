"""Huddle Middleware Package"""

from huddle.middleware.rate_limit import RateLimitMiddleware

__all__ = ["RateLimitMiddleware"]
