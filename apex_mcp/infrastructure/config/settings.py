from typing import Literal, Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Server configuration, read from ``APEX_*`` environment variables or .env"""
    model_config = SettingsConfigDict(env_prefix="APEX_", env_file=".env", extra="ignore")

    service_name: str = "apex-mcp-server"
    version: str = "1.0.0"
    protocol_version: str = "mcp-v1"

    # Item store
    store_backend: Literal["memory", "sqlite"] = "memory"
    sqlite_path: str = "apex_mcp.db"
    context_ttl_seconds: int = Field(default=86400, gt=0)
    pending_index_cap: int = Field(default=100, ge=1)
    anonymous_client_id: str = "anonymous"
    store_sweep_interval: float = Field(default=60.0, gt=0)

    # Stream sessions
    heartbeat_interval: float = Field(default=30.0, gt=0)
    poll_interval: float = Field(default=5.0, gt=0)
    max_session_lifetime: float = Field(default=3600.0, gt=0)

    # DataForSEO
    dataforseo_username: Optional[str] = None
    dataforseo_api_key: Optional[SecretStr] = None
    dataforseo_base_url: str = "https://api.dataforseo.com/v3"
    provider_timeout: float = Field(default=60.0, gt=0)

    # Logging
    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "json"

    host: str = "0.0.0.0"
    port: int = 8000

    def dataforseo_secret(self) -> Optional[str]:
        return self.dataforseo_api_key.get_secret_value() if self.dataforseo_api_key else None
