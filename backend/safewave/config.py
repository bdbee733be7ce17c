"""
SafeWave - Configuration Management

Centralized configuration using Pydantic Settings.
All secrets and environment-specific values are loaded from environment variables.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Hierarchy (highest to lowest priority):
    1. Environment variables
    2. .env file
    3. Default values
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Application ---
    app_env: str = "development"
    app_debug: bool = True
    app_log_level: str = "INFO"
    log_json_format: bool = False

    # --- Server ---
    backend_host: str = "0.0.0.0"
    backend_port: int = 8000
    allowed_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    # --- Distress Detection ---
    # "dummy" = scripted scores (default, no vision dependencies)
    # "deepface" = OpenCV camera + DeepFace emotion model (requires the vision extra)
    classifier_backend: str = "dummy"
    camera_index: int = 0
    sampler_interval_seconds: float = 1.0
    distress_labels: str = "fear,angry,sad"
    score_threshold: float = 0.65
    required_seconds: float = 2.0
    cap_accum_seconds: float = 4.0
    decay_rate: float = 2.0            # must be > 1: decay outpaces accumulation
    default_dt_seconds: float = 0.1    # used when no previous sample time exists

    # --- Alert Lifecycle ---
    armed_window_seconds: float = 5.0
    cooldown_seconds: float = 5.0
    location_timeout_seconds: float = 10.0
    sender_label: str = "SafeWave User"
    alert_message: str = "I need help. Please reach out as soon as possible."
    alert_log_max_entries: int = 500

    # --- Location ---
    # "none" = never available, "static" = fixed coordinates,
    # "shared" = last fix pushed through POST /api/location
    location_backend: str = "shared"
    static_latitude: Optional[float] = None
    static_longitude: Optional[float] = None

    # --- Contacts ---
    contacts_path: str = ""  # empty = in-memory only

    # --- Email Channel ---
    # "dummy" = records sends in memory, "smtp" = real delivery
    email_backend: str = "dummy"
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_sender_email: str = ""
    smtp_use_tls: bool = True

    # --- Call Channel (client side) ---
    # "dummy" = records calls in memory, "http" = POST to the call relay
    call_backend: str = "dummy"
    call_relay_url: str = "http://127.0.0.1:8000/api/call"
    call_request_timeout_seconds: float = 15.0
    # Sent as the Origin header; must equal the relay's relay_allowed_origin
    # unless that is "*"
    call_client_origin: str = ""

    # --- Call Relay (server side) ---
    relay_allowed_origin: str = "*"
    twilio_sid: str = ""
    twilio_token: str = ""
    twilio_from: str = ""

    @property
    def allowed_origins_list(self) -> List[str]:
        """Parse comma-separated origins into list."""
        return [origin.strip() for origin in self.allowed_origins.split(",")]

    @property
    def distress_labels_list(self) -> List[str]:
        """Parse comma-separated negative-affect labels into list."""
        return [label.strip() for label in self.distress_labels.split(",") if label.strip()]

    @property
    def twilio_configured(self) -> bool:
        """True when every Twilio credential is present."""
        return bool(self.twilio_sid and self.twilio_token and self.twilio_from)

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env.lower() == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings instance.

    Use dependency injection in routes:
        settings: Settings = Depends(get_settings)
    """
    return Settings()
