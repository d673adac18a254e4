from functools import lru_cache
from typing import Dict, Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # ─────────── APP ───────────
    app_name: str = "Research Access & Provenance Engine"
    environment: str = "dev"
    log_level: str = "INFO"

    # ─────────── API ───────────
    api_prefix: str = "/api/v1"
    request_id_header: str = "X-Request-Id"

    # ─────────── DATABASE ───────────
    database_url: str

    # ─────────── JWT / AUTH ───────────
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    jwt_access_token_minutes: int = 1440  # 24 hours

    # ─────────── ACCESS ───────────
    # any_relation | authenticated | disabled
    shared_discovery_policy: Literal["any_relation", "authenticated", "disabled"] = "any_relation"

    # ─────────── AUDIT ───────────
    audit_search_max_limit: int = 100
    field_version_default_limit: int = 20

    # ─────────── REGISTRY MIRROR ───────────
    registry_base_url: str = "https://registry.edbo.gov.ua/api/universities/"
    registry_source_key: str = "edbo-universities"
    # "<ut>:<label>" pairs, comma separated
    registry_institution_types: str = "1:ЗВО,8:Науковий інститут"
    registry_default_interval_days: int = 7
    registry_sync_stale_minutes: int = 30
    registry_request_timeout_seconds: float = 30.0
    registry_page_size: int = 0  # 0 = upstream returns everything in one response
    registry_upsert_batch_size: int = 200

    def institution_types(self) -> Dict[str, str]:
        """
        Parse REGISTRY_INSTITUTION_TYPES into {type_code: label}, preserving order.
        """
        out: Dict[str, str] = {}
        for chunk in self.registry_institution_types.split(","):
            chunk = chunk.strip()
            if not chunk:
                continue
            code, _, label = chunk.partition(":")
            out[code.strip()] = label.strip() or code.strip()
        return out


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
