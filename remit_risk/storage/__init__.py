from remit_risk.storage.redis_store import HistoryEntry, RedisRiskStore, get_redis_client

__all__ = ["HistoryEntry", "RedisRiskStore", "get_redis_client"]
