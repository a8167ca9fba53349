"""
Redis-based rate limiting for API endpoints.

Fixed-window counters keyed per authenticated user (falling back to client
IP for anonymous requests). When Redis is unreachable the limiter fails open.
"""
import logging
from functools import wraps

import redis
from django.conf import settings
from rest_framework import status
from rest_framework.response import Response

logger = logging.getLogger(__name__)

_redis_client = None


def get_redis_client():
    """Lazily connect to Redis; returns None when it is unavailable."""
    global _redis_client
    if _redis_client is None:
        try:
            client = redis.Redis.from_url(
                settings.REDIS_URL,
                decode_responses=True,
                socket_connect_timeout=2
            )
            client.ping()
        except redis.RedisError as e:
            logger.warning(f"Redis connection failed: {e}. Rate limiting is disabled.")
            return None
        _redis_client = client
    return _redis_client


def get_client_ip(request):
    """Extract client IP address from request."""
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        return x_forwarded_for.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR', 'unknown')


def rate_limit_identity(request) -> str:
    user = getattr(request, 'user', None)
    if user is not None and user.is_authenticated:
        return f"user:{user.pk}"
    return f"ip:{get_client_ip(request)}"


def consume(scope: str, request, max_requests: int, window_seconds: int):
    """
    Count one request against ``scope``.

    Returns (allowed, remaining, reset_seconds), or None when limiting is
    disabled or Redis is unavailable.
    """
    if not getattr(settings, 'RATE_LIMIT_ENABLED', True):
        return None
    client = get_redis_client()
    if client is None:
        return None

    key = f"rate_limit:{scope}:{rate_limit_identity(request)}"
    try:
        count = client.incr(key)
        if count == 1:
            client.expire(key, window_seconds)
        ttl = client.ttl(key)
    except redis.RedisError as e:
        logger.error(f"Redis error in rate limiting: {e}")
        return None

    return count <= max_requests, max(0, max_requests - count), ttl


def too_many_requests(max_requests: int, window_seconds: int, reset: int) -> Response:
    return Response(
        {
            'error': 'Rate limit exceeded',
            'detail': f'Maximum {max_requests} requests per {window_seconds} seconds allowed.',
            'retry_after': reset
        },
        status=status.HTTP_429_TOO_MANY_REQUESTS,
        headers={
            'X-RateLimit-Limit': str(max_requests),
            'X-RateLimit-Remaining': '0',
            'X-RateLimit-Reset': str(reset),
            'Retry-After': str(reset)
        }
    )


def _decorate(response, max_requests, remaining, reset):
    response['X-RateLimit-Limit'] = str(max_requests)
    response['X-RateLimit-Remaining'] = str(remaining)
    response['X-RateLimit-Reset'] = str(reset)
    return response


def rate_limit(max_requests: int = 20, window_seconds: int = 60):
    """
    Rate limiting decorator for DRF view methods.

    Usage:
        @rate_limit(20, 60)  # 20 requests per minute
        def get(self, request):
            ...
    """
    def decorator(view_func):
        @wraps(view_func)
        def wrapper(self, request, *args, **kwargs):
            outcome = consume(view_func.__qualname__, request, max_requests, window_seconds)
            if outcome is None:
                return view_func(self, request, *args, **kwargs)

            allowed, remaining, reset = outcome
            if not allowed:
                return too_many_requests(max_requests, window_seconds, reset)
            return _decorate(view_func(self, request, *args, **kwargs), max_requests, remaining, reset)

        return wrapper
    return decorator


class RateLimitMixin:
    """
    Rate limiting for class-based views, checked after authentication.

    Limits default to settings.STOCK_MUTATION_RATE_LIMIT; views may set
    ``rate_limit_scope`` to share a budget across several endpoints.
    """
    rate_limit_scope = None

    def get_rate_limit(self):
        return getattr(settings, 'STOCK_MUTATION_RATE_LIMIT', (60, 60))

    def initial(self, request, *args, **kwargs):
        super().initial(request, *args, **kwargs)
        self._rate_limit_state = None

        max_requests, window_seconds = self.get_rate_limit()
        scope = self.rate_limit_scope or self.__class__.__name__
        outcome = consume(scope, request, max_requests, window_seconds)
        if outcome is None:
            return

        allowed, remaining, reset = outcome
        if not allowed:
            raise RateLimitExceeded(max_requests, window_seconds, reset)
        self._rate_limit_state = (max_requests, remaining, reset)

    def handle_exception(self, exc):
        if isinstance(exc, RateLimitExceeded):
            return too_many_requests(exc.max_requests, exc.window_seconds, exc.reset)
        return super().handle_exception(exc)

    def finalize_response(self, request, response, *args, **kwargs):
        response = super().finalize_response(request, response, *args, **kwargs)
        state = getattr(self, '_rate_limit_state', None)
        if state:
            _decorate(response, *state)
        return response


class RateLimitExceeded(Exception):
    def __init__(self, max_requests, window_seconds, reset):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.reset = reset
        super().__init__(f"Rate limit of {max_requests}/{window_seconds}s exceeded")
