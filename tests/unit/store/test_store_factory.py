import pytest

from dentadesk.config import AppConfig, StoreAdapter, SupabaseConfig
from dentadesk.domain.exceptions import DataStoreUnavailableError
from dentadesk.store.adapters.memory import MemoryStoreClient
from dentadesk.store.adapters.postgrest import PostgRESTClient
from dentadesk.store.factory import build_store_client


class TestBuildStoreClient:
    def test_builds_memory_client(self) -> None:
        config = AppConfig(store_adapter=StoreAdapter.MEMORY)

        assert isinstance(build_store_client(config), MemoryStoreClient)

    def test_builds_postgrest_client(self) -> None:
        config = AppConfig(
            store_adapter=StoreAdapter.POSTGREST,
            supabase=SupabaseConfig(url="https://clinic.supabase.test", key="anon-key"),
        )

        assert isinstance(build_store_client(config), PostgRESTClient)

    def test_postgrest_requires_credentials(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("SUPABASE_URL", raising=False)
        monkeypatch.delenv("SUPABASE_KEY", raising=False)
        config = AppConfig(
            store_adapter=StoreAdapter.POSTGREST,
            supabase=SupabaseConfig(url="", key=""),
        )

        with pytest.raises(DataStoreUnavailableError, match="SUPABASE_URL"):
            build_store_client(config)


class TestConfig:
    def test_reads_anon_key_alias(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("SUPABASE_KEY", raising=False)
        monkeypatch.setenv("SUPABASE_ANON_KEY", "from-env")

        assert SupabaseConfig().key == "from-env"

    def test_reads_store_adapter_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DENTADESK_STORE_ADAPTER", "memory")

        assert AppConfig().store_adapter is StoreAdapter.MEMORY
