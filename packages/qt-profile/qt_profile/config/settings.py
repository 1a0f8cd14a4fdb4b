"""Application configuration for QueryTorque profile analysis."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from ``QT_``-prefixed environment variables or ``.env``."""

    # Snowflake connection
    snowflake_account: str = ""
    snowflake_user: str = ""
    snowflake_password: str = ""
    snowflake_warehouse: str = ""
    snowflake_database: str = ""
    snowflake_schema: str = "PUBLIC"
    snowflake_role: str = ""

    # Output
    output_format: str = "pretty"

    # Threads used to condense operators (1 = sequential)
    condense_workers: int = 1

    model_config = SettingsConfigDict(env_prefix="QT_", env_file=".env", extra="ignore")

    @property
    def has_snowflake(self) -> bool:
        """Check if enough Snowflake settings are present to connect."""
        return bool(self.snowflake_account and self.snowflake_user)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
