from typing import Callable

from loguru import logger

from dentadesk.config import AppConfig, StoreAdapter
from dentadesk.domain.exceptions import DataStoreUnavailableError
from dentadesk.store.adapters.memory import MemoryStoreClient
from dentadesk.store.adapters.postgrest import PostgRESTClient
from dentadesk.store.ports import StoreClientProtocol


def _build_postgrest(config: AppConfig) -> StoreClientProtocol:
    if not config.supabase.url or not config.supabase.key:
        raise DataStoreUnavailableError("SUPABASE_URL and SUPABASE_KEY must be configured")
    return PostgRESTClient(
        config.supabase.url,
        api_key=config.supabase.key,
        schema_name=config.supabase.schema_name,
        timeout=config.supabase.timeout,
    )


def _build_memory(config: AppConfig) -> StoreClientProtocol:
    return MemoryStoreClient()


_BUILDERS: dict[StoreAdapter, Callable[[AppConfig], StoreClientProtocol]] = {
    StoreAdapter.POSTGREST: _build_postgrest,
    StoreAdapter.MEMORY: _build_memory,
}


def build_store_client(config: AppConfig) -> StoreClientProtocol:
    """Build the data store client selected by config."""
    adapter = config.store_adapter
    logger.info("Building data store client with adapter: {}", adapter.value)
    return _BUILDERS[adapter](config)
