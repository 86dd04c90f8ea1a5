"""
Runtime Metrics Agent - Configuration

Loads configuration from command-line flags and environment variables.
Environment variables take precedence over flags.
"""

import argparse
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AgentSettings(BaseSettings):
    """Agent settings."""

    server_address: str = Field(default="localhost:8080", alias="ADDRESS")
    poll_interval: float = Field(default=2, gt=0, alias="POLL_INTERVAL")
    report_interval: float = Field(default=10, gt=0, alias="REPORT_INTERVAL")
    log_level: str = Field(default="info", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        populate_by_name=True,
        case_sensitive=False,
    )

    @property
    def server_url(self) -> str:
        """Base URL of the metrics server."""
        if self.server_address.startswith(("http://", "https://")):
            return self.server_address
        return f"http://{self.server_address}"

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


def parse_args(argv: Optional[List[str]] = None) -> AgentSettings:
    """Build settings from flags, then environment."""
    parser = argparse.ArgumentParser(description="Runtime metrics agent")
    parser.add_argument("-a", dest="ADDRESS", help="address and port of the metrics server")
    parser.add_argument("-r", dest="REPORT_INTERVAL", type=float, help="report interval in seconds (default 10)")
    parser.add_argument("-p", dest="POLL_INTERVAL", type=float, help="poll interval in seconds (default 2)")
    parser.add_argument("--log-level", dest="LOG_LEVEL", help="logging level (default info)")
    args = parser.parse_args(argv)

    flags = {key: value for key, value in vars(args).items() if value is not None}
    return AgentSettings(**flags)
