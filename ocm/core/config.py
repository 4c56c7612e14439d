"""Client configuration with environment variables."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Client settings loaded from OCM_* environment variables."""

    model_config = SettingsConfigDict(env_prefix="OCM_", env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # Client Version (format: a.bc.de - major.feature.patch)
    VERSION: str = "0.18.00"

    # Gateway (static fallback; runtime config and persisted config win)
    BASE_URL: str = ""
    ANON_KEY: str = ""

    # Host serving /api/runtime-config (empty = skip the runtime lookup)
    RUNTIME_CONFIG_URL: str = ""

    # Per-request timeout for every gateway call
    REQUEST_TIMEOUT_SECONDS: float = 10.0

    # Upper bound on one CLI command (all of its gateway calls together)
    COMMAND_TIMEOUT_SECONDS: float = 60.0

    # Local key-value state (session, identity cache, gateway config)
    STATE_FILE: str = "~/.config/ocm/state.json"

    # Case lifecycle configuration: "review" (six-state) or "simple" (open/closed)
    CASE_LIFECYCLE: str = "review"

    # Magic link redirect target (empty = gateway default)
    MAGIC_LINK_REDIRECT: str = ""

    LOG_LEVEL: str = "WARNING"

    @property
    def state_path(self) -> Path:
        """Expanded path of the local state file."""
        return Path(self.STATE_FILE).expanduser()

    @property
    def timeout(self) -> float:
        """Request timeout, never below one second."""
        return max(1.0, float(self.REQUEST_TIMEOUT_SECONDS))


settings = Settings()
