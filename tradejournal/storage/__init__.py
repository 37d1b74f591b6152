# Storage module
"""Local bar cache consulted before any remote provider."""

from tradejournal.storage.cache import IBarCache, JsonFileBarCache, MemoryBarCache, cache_from_settings

__all__ = ["IBarCache", "JsonFileBarCache", "MemoryBarCache", "cache_from_settings"]
