from .rate_limit import FixedWindowCounter, RateLimitMiddleware, client_address

__all__ = ["FixedWindowCounter", "RateLimitMiddleware", "client_address"]
