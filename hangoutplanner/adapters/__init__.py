"""
Adapters layer - Store backends (bundled JSON data, hosted REST backend).
"""

from ..config import StoreConfig
from .json_store import JsonStore
from .rest_store import RestStore
from .store import StoreProtocol


def create_store(config: StoreConfig) -> StoreProtocol:
    """Build the store backend selected in configuration."""
    if config.backend == "rest":
        return RestStore(
            base_url=config.base_url,
            api_key=config.api_key,
            timeout_seconds=config.timeout_seconds,
            max_attempts=config.max_attempts,
            base_delay_seconds=config.base_delay_seconds,
            max_delay_seconds=config.max_delay_seconds,
        )
    return JsonStore.from_file(config.data_file)


__all__ = ["JsonStore", "RestStore", "StoreProtocol", "create_store"]
