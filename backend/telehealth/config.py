from pydantic_settings import BaseSettings
from pydantic import Field
from functools import lru_cache
from typing import Literal
import logging

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings."""

    # Database
    database_url: str = Field(default="sqlite+aiosqlite:///./telehealth.db", env="DATABASE_URL")
    database_timeout_seconds: float = Field(default=5.0, env="DATABASE_TIMEOUT_SECONDS")

    # Staff / portal auth tokens
    jwt_secret_key: str = Field(default="change-me", env="JWT_SECRET_KEY")
    access_token_expire_seconds: int = Field(default=86400, env="ACCESS_TOKEN_EXPIRE_SECONDS")
    # Username/patient-id token exchange without a password. Development only.
    auth_token_exchange_enabled: bool = Field(default=False, env="AUTH_TOKEN_EXCHANGE_ENABLED")
    csrf_secret_key: str = Field(default="change-me-too", env="CSRF_SECRET_KEY")

    # Jitsi server
    jitsi_server_domain: str = Field(default="meet.epa-bienestar.com.ar", env="JITSI_SERVER_DOMAIN")
    jitsi_room_prefix: str = Field(default="openemr", env="JITSI_ROOM_PREFIX")

    # Jitsi JWT (requires the JWT plugin configured on the Jitsi server)
    jitsi_enable_jwt: bool = Field(default=False, env="JITSI_ENABLE_JWT")
    jitsi_jwt_app_id: str = Field(default="", env="JITSI_JWT_APP_ID")
    jitsi_jwt_app_secret: str = Field(default="", env="JITSI_JWT_APP_SECRET")

    # Room features
    jitsi_enable_lobby: bool = Field(default=False, env="JITSI_ENABLE_LOBBY")
    jitsi_enable_chat: bool = Field(default=True, env="JITSI_ENABLE_CHAT")
    jitsi_enable_screen_sharing: bool = Field(default=True, env="JITSI_ENABLE_SCREEN_SHARING")
    jitsi_enable_recording: bool = Field(default=False, env="JITSI_ENABLE_RECORDING")
    jitsi_require_display_name: bool = Field(default=True, env="JITSI_REQUIRE_DISPLAY_NAME")
    jitsi_default_language: Literal["es", "en", "pt", "fr", "de", "it"] = Field(
        default="es", env="JITSI_DEFAULT_LANGUAGE"
    )
    jitsi_enable_patient_portal: bool = Field(default=True, env="JITSI_ENABLE_PATIENT_PORTAL")

    # Logging
    log_level: str = Field(default="INFO", env="LOG_LEVEL")

    class Config:
        env_file = ".env"
        case_sensitive = False

    def is_telehealth_configured(self) -> bool:
        """True when a room can be built: a server domain, and JWT credentials if JWT is on."""
        if not self.jitsi_server_domain:
            logger.debug("Telehealth is missing server domain configuration")
            return False
        if self.jitsi_enable_jwt and (not self.jitsi_jwt_app_id or not self.jitsi_jwt_app_secret):
            logger.debug("Telehealth JWT is enabled but app ID or secret is missing")
            return False
        return True

    def public_flags(self) -> dict:
        """Non-secret feature flags for the front end."""
        return {
            "jitsiDomain": self.jitsi_server_domain,
            "enableLobby": self.jitsi_enable_lobby,
            "enableChat": self.jitsi_enable_chat,
            "enableScreenSharing": self.jitsi_enable_screen_sharing,
            "enableRecording": self.jitsi_enable_recording,
            "defaultLanguage": self.jitsi_default_language,
            "requireDisplayName": self.jitsi_require_display_name,
        }


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
