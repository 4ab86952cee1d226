"""Daily scan quota enforcement."""

from fragmentscan.quota.rate_limiter import RateLimiter, quota_key

__all__ = ["RateLimiter", "quota_key"]
