"""
Runtime Metrics Server - Configuration

Loads configuration from command-line flags and environment variables.
Environment variables take precedence over flags.
"""

import argparse
from typing import List, Optional, Tuple

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Server settings."""

    address: str = Field(default="localhost:8080", alias="ADDRESS")
    store_interval: float = Field(default=300, ge=0, alias="STORE_INTERVAL")
    file_storage_path: str = Field(default="/tmp/metrics-db.json", alias="FILE_STORAGE_PATH")
    restore: bool = Field(default=True, alias="RESTORE")
    log_level: str = Field(default="info", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        populate_by_name=True,
        case_sensitive=False,
    )

    @property
    def host_port(self) -> Tuple[str, int]:
        """Split ADDRESS into host and port; an empty host listens on all interfaces."""
        host, _, port = self.address.rpartition(":")
        return host or "0.0.0.0", int(port)

    @property
    def persistence_enabled(self) -> bool:
        return bool(self.file_storage_path)

    @property
    def synchronous_save(self) -> bool:
        """Save after every write instead of on a timer."""
        return self.store_interval == 0

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # Flags arrive as init kwargs; the environment overrides them.
        return env_settings, init_settings, dotenv_settings, file_secret_settings


def parse_args(argv: Optional[List[str]] = None) -> Settings:
    """Build settings from flags, then environment."""
    parser = argparse.ArgumentParser(description="Runtime metrics server")
    parser.add_argument("-a", dest="ADDRESS", help="address and port to run server")
    parser.add_argument(
        "-i", dest="STORE_INTERVAL", type=float,
        help="seconds between saves to disk (default 300, 0 saves after every write)",
    )
    parser.add_argument(
        "-f", dest="FILE_STORAGE_PATH",
        help="file for saved metrics (default /tmp/metrics-db.json, empty disables saving)",
    )
    parser.add_argument(
        "-r", dest="RESTORE",
        help="true/false: load saved metrics from the file at startup (default true)",
    )
    parser.add_argument("--log-level", dest="LOG_LEVEL", help="logging level (default info)")
    args = parser.parse_args(argv)

    flags = {key: value for key, value in vars(args).items() if value is not None}
    return Settings(**flags)
