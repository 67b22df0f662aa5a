from enum import Enum

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class StoreAdapter(Enum):
    POSTGREST = "postgrest"
    MEMORY = "memory"


class SupabaseConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SUPABASE_", env_file=".env", extra="ignore", populate_by_name=True
    )

    url: str = ""
    key: str = Field(
        default="",
        validation_alias=AliasChoices(
            "SUPABASE_KEY",
            "SUPABASE_ANON_KEY",
        ),
    )
    schema_name: str = Field(
        default="public",
        validation_alias=AliasChoices(
            "SUPABASE_SCHEMA",
        ),
    )
    timeout: float = 30.0


class AppConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="DENTADESK_", env_file=".env", extra="ignore")

    clinic_timezone: str = "Europe/Rome"
    store_adapter: StoreAdapter = StoreAdapter.POSTGREST
    default_tax_rate: float = 22.0
    supabase: SupabaseConfig = Field(default_factory=lambda: SupabaseConfig())
