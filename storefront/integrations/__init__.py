from storefront.integrations.redis import close_async_redis_client, get_async_redis_client

__all__ = ["close_async_redis_client", "get_async_redis_client"]
