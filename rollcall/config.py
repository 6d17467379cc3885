"""
config.py: Rollcall application settings.

Usage:
    from rollcall.config import settings
    print(settings.geofence_radius_m)

The module-level singleton is what the running service uses. create_app()
also accepts an explicit Settings instance so alternative deployments (a
50 m radius, purge-on-export, no address check) can run side by side in tests.
"""
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Silently ignore any extra env vars
    )

    # --- Geofence ---
    # Maximum distance (metres) between the session anchor and a check-in.
    geofence_radius_m: float = 100.0

    # --- Duplicate prevention ---
    enforce_device_marker: bool = True
    # Best-effort only: students behind the same NAT share an address.
    enforce_address_dedup: bool = True

    # --- Export ---
    # Delete the session as soon as an export has been produced.
    purge_on_export: bool = False

    # --- Session identifiers ---
    session_id_length: int = 8
    session_id_max_attempts: int = 16

    # --- Device markers ---
    # Generate with: python -c "import secrets; print(secrets.token_hex(32))"
    device_marker_secret: str = "change-me-in-production-at-least-32-chars"
    device_marker_ttl_seconds: int = 86400   # 24 hours
    device_marker_cookie_prefix: str = "att_"

    # --- Join URL ---
    # Empty → derived from the incoming request (X-Forwarded-* aware).
    public_base_url: str = ""
    join_path: str = "/join.html"

    # --- Client address ---
    trust_forwarded_for: bool = True

    # --- CORS ---
    # Comma-separated list of allowed frontend origins
    cors_origins: str = "*"

    # --- Application ---
    debug: bool = False
    app_version: str = "0.1.0"

    @property
    def cors_origins_list(self) -> List[str]:
        """Split comma-separated CORS origins into a list."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


# Module-level singleton: import this throughout the codebase
settings = Settings()
