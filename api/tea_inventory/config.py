"""
Configuration Settings.

Application configuration loaded from environment variables (prefix
``TEA_INVENTORY_``) and an optional ``.env`` file by pydantic-settings.
"""
from __future__ import annotations

from typing import List, Literal, Optional, Union

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings model.

    Every field maps to ``TEA_INVENTORY_<FIELD_NAME>`` in the environment.
    """

    model_config = SettingsConfigDict(
        env_prefix="TEA_INVENTORY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ---------------------------------------------------------------------
    # Server
    # ---------------------------------------------------------------------
    environment: str = Field(default="development", description="development or production")
    host: str = Field(default="0.0.0.0", description="Bind address for `tea-inventory serve`")
    port: int = Field(default=3001, description="Bind port for `tea-inventory serve`")
    cors_origins: List[str] = Field(default=["http://localhost:3000"])
    expose_error_details: bool = Field(
        default=False,
        description="Put the exception text in 500 responses (ignored in production)",
    )

    # ---------------------------------------------------------------------
    # Logging
    # ---------------------------------------------------------------------
    log_level: str = Field(default="INFO", description="DEBUG, INFO, WARNING, ERROR, CRITICAL")
    log_format: Literal["simple", "detailed", "json"] = "detailed"

    # ---------------------------------------------------------------------
    # Database
    # ---------------------------------------------------------------------
    database_url: str = Field(default="sqlite:///./tea_inventory.db")
    database_echo: bool = False

    # ---------------------------------------------------------------------
    # Sessions
    # ---------------------------------------------------------------------
    session_secret: str = Field(default="change_me_tea_inventory")
    session_cookie_name: str = "tea_inventory.sid"
    session_max_age: Optional[int] = Field(default=24 * 60 * 60, description="Seconds; None = browser session")
    session_signed: bool = True
    session_http_only: bool = True
    session_secure: bool = False
    session_same_site: Union[bool, Literal["lax", "strict", "none"]] = "lax"
    session_path: str = "/"
    session_domain: Optional[str] = None
    # push the expiry forward on every authenticated request
    session_rolling: bool = False

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def cookie_policy(self):
        """Default cookie policy for new sessions."""
        from .sessions import CookiePolicy

        return CookiePolicy(
            max_age=self.session_max_age,
            signed=self.session_signed,
            http_only=self.session_http_only,
            path=self.session_path,
            domain=self.session_domain,
            secure=self.session_secure,
            same_site=self.session_same_site,
        )


settings = Settings()
