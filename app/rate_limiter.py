"""
Hybrid in-memory + Redis rate limiting utilities

Counts are kept in process memory and synced to Redis periodically so that
a burst of requests costs a handful of Redis commands instead of one each.
The limiter fails closed: if Redis is unreachable, requests are denied.
"""

import logging
import os
import time
from threading import Lock
from typing import Optional

import redis
from fastapi import HTTPException, Request, status

logger = logging.getLogger(__name__)

redis_client: Optional[redis.Redis] = None

# {key: {"count": int, "reset_time": int, "last_redis_sync": int}}
memory_cache: dict[str, dict] = {}
cache_lock = Lock()

MEMORY_CACHE_SYNC_INTERVAL = 10
MEMORY_CACHE_CLEANUP_INTERVAL = 60
last_cleanup_time = 0


def _mask_url(url: str) -> str:
    if "@" not in url:
        return "****"
    scheme = url.split(":", 1)[0]
    return f"{scheme}:****@{url.split('@', 1)[1]}"


def get_redis_client() -> redis.Redis:
    """
    Get or create the Redis client.

    REDIS_URL wins when set; otherwise REDIS_HOST / REDIS_PORT / REDIS_PASSWORD /
    REDIS_DB / REDIS_SSL are used.
    """
    global redis_client

    if redis_client is not None:
        return redis_client

    common = {
        "decode_responses": True,
        "socket_connect_timeout": 15,
        "socket_timeout": 30,
        "retry_on_timeout": True,
        "health_check_interval": 30,
        "max_connections": 20,
    }

    redis_url = os.getenv("REDIS_URL")
    if redis_url:
        logger.info(f"📡 Connecting to Redis via URL: {_mask_url(redis_url)}")
        client = redis.from_url(redis_url, **common)
    else:
        redis_host = os.getenv("REDIS_HOST", "localhost")
        redis_port = int(os.getenv("REDIS_PORT", "6379"))
        redis_ssl = os.getenv("REDIS_SSL", "false").lower() == "true"
        logger.info(f"📡 Connecting to Redis at {redis_host}:{redis_port} (ssl={redis_ssl})")
        client = redis.Redis(
            host=redis_host,
            port=redis_port,
            password=os.getenv("REDIS_PASSWORD"),
            db=int(os.getenv("REDIS_DB", "0")),
            ssl=redis_ssl,
            **common,
        )

    try:
        client.ping()
    except Exception as e:
        logger.error(f"❌ Failed to connect to Redis: {str(e)}")
        logger.error("⚠️ Rate limited endpoints will reject requests (fail-closed mode)")
        raise

    logger.info("Redis connected successfully")
    redis_client = client
    return redis_client


def cleanup_expired_cache():
    """Remove expired entries from memory cache"""
    global last_cleanup_time
    current_time = int(time.time())

    if current_time - last_cleanup_time < MEMORY_CACHE_CLEANUP_INTERVAL:
        return

    with cache_lock:
        expired_keys = [
            k for k, v in memory_cache.items() if current_time >= v.get("reset_time", 0)
        ]
        for k in expired_keys:
            del memory_cache[k]

    if expired_keys:
        logger.debug(f"🧹 Cleaned up {len(expired_keys)} expired rate limit entries")
    last_cleanup_time = current_time


def _load_entry(key: str, window_seconds: int, client: redis.Redis, now: int) -> dict:
    try:
        redis_count = client.get(key)
        redis_ttl = client.ttl(key)
    except redis.RedisError as e:
        logger.warning(f"⚠️ Failed to load {key} from Redis, using memory only: {e}")
        redis_count, redis_ttl = None, -1

    if redis_count and redis_ttl > 0:
        return {"count": int(redis_count), "reset_time": now + redis_ttl, "last_redis_sync": now}
    return {"count": 0, "reset_time": now + window_seconds, "last_redis_sync": now}


def check_rate_limit(
    key: str, limit: int, window_seconds: int, client: redis.Redis
) -> tuple[bool, int, int]:
    """
    Fixed-window check against the in-memory counter, synced to Redis.

    Returns:
        Tuple of (is_allowed, current_count, ttl_seconds)
    """
    try:
        now = int(time.time())
        cleanup_expired_cache()

        with cache_lock:
            entry = memory_cache.get(key)
            if entry is None:
                entry = memory_cache[key] = _load_entry(key, window_seconds, client, now)

            if now >= entry["reset_time"]:
                entry.update(count=0, reset_time=now + window_seconds, last_redis_sync=0)

            is_allowed = entry["count"] < limit
            if is_allowed:
                entry["count"] += 1

            if now - entry.get("last_redis_sync", 0) >= MEMORY_CACHE_SYNC_INTERVAL:
                try:
                    client.set(key, entry["count"], ex=window_seconds)
                    entry["last_redis_sync"] = now
                except redis.RedisError as e:
                    logger.warning(f"⚠️ Failed to sync {key} to Redis: {e}")

            return is_allowed, entry["count"], max(0, entry["reset_time"] - now)

    except Exception as e:
        logger.error(f"❌ Rate limit check failed: {str(e)}")
        logger.warning("🔒 Denying request due to rate limiting error (fail-closed mode)")
        return False, limit, 0


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


async def rate_limit_dependency(
    request: Request,
    limit: int,
    window_seconds: int,
    key_prefix: str = "rate_limit",
    use_ip: bool = True,
):
    """
    Enforce a fixed-window limit for the current request.

    Args:
        request: FastAPI request object
        limit: Maximum requests allowed
        window_seconds: Time window in seconds
        key_prefix: Prefix for Redis key
        use_ip: If True, limit per client IP, otherwise globally
    """
    try:
        client = get_redis_client()
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Rate limiting service temporarily unavailable",
        ) from e

    key = f"{key_prefix}:{_client_ip(request) if use_ip else 'global'}"
    is_allowed, current_count, ttl = check_rate_limit(key, limit, window_seconds, client)

    if not is_allowed:
        logger.warning(f"🚫 Rate limit EXCEEDED for {key} - {current_count}/{limit} requests used")
        raise HTTPException(
            status_code=429,
            detail={
                "message": f"Rate limit exceeded. Maximum {limit} requests per {window_seconds} seconds.",
                "retry_after": ttl,
                "limit": limit,
                "window_seconds": window_seconds,
            },
            headers={"Retry-After": str(ttl)},
        )

    request.state.rate_limit_remaining = limit - current_count
    request.state.rate_limit_limit = limit
    request.state.rate_limit_reset = int(time.time()) + ttl


def create_rate_limiter(
    limit: int, window_seconds: int, key_prefix: str = "rate_limit", use_ip: bool = True
):
    """
    Create a rate limiter dependency with specific parameters

    Example usage:
        rate_limit_otp = create_rate_limiter(limit=5, window_seconds=900, key_prefix="otp_send")

        @router.post("/{account_id}/send-otp")
        async def send_otp(..., _: None = Depends(rate_limit_otp)):
            ...
    """

    async def rate_limiter(request: Request):
        return await rate_limit_dependency(request, limit, window_seconds, key_prefix, use_ip)

    return rate_limiter


# Shared limiters
rate_limit_otp_send = create_rate_limiter(limit=5, window_seconds=900, key_prefix="otp_send")
rate_limit_otp_verify = create_rate_limiter(limit=10, window_seconds=900, key_prefix="otp_verify")
rate_limit_withdrawal = create_rate_limiter(limit=5, window_seconds=3600, key_prefix="withdrawal")
rate_limit_recharge = create_rate_limiter(limit=20, window_seconds=3600, key_prefix="recharge")
