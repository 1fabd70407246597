"""
Bridge settings, read from the environment (or a .env file) by pydantic-settings.

Names are prefix-free and case-insensitive: WS_BRIDGE_PORT=4000 sets
ws_bridge_port. Explicit arguments to WebSocketBridge always win over these.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Defaults suit local development."""

    # Listening address, used when the embedding application passes none
    ws_bridge_host: str = "localhost"
    ws_bridge_port: int = 3001
    ws_bridge_path: str = "/ws"

    # Socket I/O bounds, in seconds
    ws_send_timeout: float = 5.0  # slower writes count as write failures
    ws_close_timeout: float = 2.0  # per connection, on stop() and force-close
    ws_server_shutdown_timeout: float = 10.0  # uvicorn exit on stop()

    # Runtime
    environment: str = "development"
    debug: bool = True
    log_level: str = ""  # empty: DEBUG when debug, else INFO

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"

    def validate_production_settings(self) -> list[str]:
        """
        Sanity checks run by `ws-bridge serve` before starting.

        Returns:
            Human-readable problems; empty when the settings look sane.
        """
        problems: list[str] = []

        if not self.ws_bridge_path.startswith("/"):
            problems.append("WS_BRIDGE_PATH must start with '/'")
        for name in ("ws_send_timeout", "ws_close_timeout", "ws_server_shutdown_timeout"):
            if getattr(self, name) <= 0:
                problems.append(f"{name.upper()} must be positive")

        if self.environment != "production":
            return problems

        if self.debug:
            problems.append("DEBUG must be False in production")
        if self.ws_bridge_host in {"0.0.0.0", "::"}:
            problems.append(
                "WS_BRIDGE_HOST binds every interface; bind a specific address "
                "or put the bridge behind a proxy in production"
            )
        return problems


@lru_cache
def get_settings() -> Settings:
    """Process-wide settings, loaded once."""
    return Settings()


settings = get_settings()
