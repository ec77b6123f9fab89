"""Handwash Server Configuration."""

import secrets
from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Server
    server_name: str = "Handwash Server"
    host: str = "0.0.0.0"
    port: int = 8080
    debug: bool = False
    cors_origins: list[str] = ["*"]

    # Paths
    data_dir: Path = Path.home() / "handwash" / "data"

    # Database
    db_path: Path = Path.home() / "handwash" / "data" / "handwash.db"

    # JWT (tokens are issued by the identity provider, only verified here)
    jwt_secret: str = ""
    jwt_algorithm: str = "HS256"
    jwt_jwks_url: str = ""
    jwt_audience: str = ""
    jwt_issuer: str = ""

    # Web Push (VAPID)
    vapid_subject: str = "mailto:noreply@example.com"
    vapid_public_key: str = ""
    vapid_private_key: str = ""

    # Daily reminder
    reminder_enabled: bool = True
    reminder_utc_offset_hours: int = 9  # JST
    reminder_hour: int = 20
    reminder_minute: int = 0
    reminder_url: str = "/"

    # Handwash events
    event_query_max: int = 200
    event_query_default_limit: int = 50
    event_default_window_days: int = 7

    # Invites
    retain_invite_code: bool = False

    # Ops alerts
    alert_webhook_url: str = ""
    alert_timeout_seconds: float = 3.0

    model_config = {"env_prefix": "HANDWASH_"}

    def ensure_dirs(self) -> None:
        """Create all required directories."""
        for d in [self.data_dir, self.db_path.parent]:
            d.mkdir(parents=True, exist_ok=True)

    def ensure_secrets(self) -> None:
        """Generate the local JWT secret if not set, persist it so it survives restarts."""
        if self.jwt_jwks_url:
            return

        secrets_file = self.data_dir / ".secrets"
        saved = {}
        if secrets_file.exists():
            for line in secrets_file.read_text().strip().splitlines():
                if "=" in line:
                    k, v = line.split("=", 1)
                    saved[k.strip()] = v.strip()

        if not self.jwt_secret:
            self.jwt_secret = saved.get("jwt_secret", "") or secrets.token_urlsafe(32)

        # Persist for next restart
        secrets_file.write_text(f"jwt_secret={self.jwt_secret}\n")


settings = Settings()
settings.ensure_dirs()
settings.ensure_secrets()
