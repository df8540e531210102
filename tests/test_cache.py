"""Tests for the Redis backup cache."""
from onboarding_engine.utils.cache import BackupCache, backup_key


def test_disabled_cache_is_noop():
    cache = BackupCache(enabled=False)

    assert not cache.available
    assert cache.get("k") is None
    assert cache.set("k", "v") is False
    assert cache.remove("k") is False


def test_unreachable_redis_disables_cache():
    cache = BackupCache(url="redis://127.0.0.1:1/0", enabled=True)

    assert not cache.available
    assert cache.get("k") is None


def test_backup_key_uses_prefix():
    assert backup_key("abc") == "onboarding_backup_abc"
