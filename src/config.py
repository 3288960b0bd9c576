"""
Server configuration.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Server settings."""

    # Server settings
    host: str = "0.0.0.0"
    port: int = 6666
    max_clients: int = 32
    listen_backlog: int = 5

    # Framing
    buffer_size: int = 1024
    overflow_reserve: int = 4

    # Timing
    select_timeout: float = 1.0
    tick_interval: float = 60.0
    idle_timeout_ticks: int = 10

    # TLS
    certfile: str = "cert.pem"
    keyfile: str = "key.pem"
    handshake_timeout: float = 5.0
    write_timeout: float = 10.0

    # Logging
    logging_level: str = "INFO"
    logging_on_file: bool = False
    logs_dir: str = "logs"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )


# Global settings instance
settings = Settings()
