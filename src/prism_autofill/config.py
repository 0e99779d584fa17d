"""Configuration management for Prism Autofill."""

from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_prefix="PRISM_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application Configuration
    debug: bool = Field(False, description="Enable debug mode")
    log_level: str = Field("INFO", description="Logging level")

    # Browser Configuration
    browser_headless: bool = Field(False, description="Run browser in headless mode")
    browser_user_data_dir: Optional[str] = Field(None, description="Browser user data directory for persistent sessions")
    script_timeout: float = Field(10.0, description="Timeout for a single page script evaluation in seconds")
    dom_settle_delay: float = Field(1.0, description="Delay after page load before a page is considered ready")

    # Storage Configuration
    storage_path: str = Field("~/.prism/settings.json", description="Key-value storage file for custom services")
    max_custom_services: int = Field(3, description="Maximum number of custom services")

    # Waiting stage
    wait_timeout: float = Field(10.0, description="Timeout waiting for a web view to finish loading")
    wait_attempts: int = Field(10, description="Attempts polling the page wait precondition")
    wait_interval: float = Field(0.3, description="Interval between wait precondition polls")

    # Locating stage
    locate_attempts: int = Field(10, description="Attempts locating the input element")
    locate_interval: float = Field(0.3, description="Interval between input locate attempts")

    # Injecting / settling stage
    settle_delay: float = Field(0.5, description="Delay between text injection and submit")
    verify_delay: float = Field(0.1, description="Delay before reading back injected text")
    verify_prefix_length: int = Field(10, description="Characters compared when verifying injected text")
    verify_gates_success: bool = Field(False, description="Treat failed verification as injection failure")

    # Submitting stage
    click_focus_delay: float = Field(0.05, description="Delay between focusing and clicking the send control")
    click_wave_delay: float = Field(0.01, description="Delay between native click and synthetic event wave")
    submit_score_threshold: int = Field(3, description="Minimum score accepted in the global send control search")
    near_input_px: float = Field(150.0, description="Distance in pixels considered near an input region")

    # Script execution retries
    script_retries: int = Field(3, description="Retries on script execution errors")
    script_retry_backoff: float = Field(0.5, description="Delay between script execution retries")

    # Multi-service mode
    service_switch_delay: float = Field(0.5, description="Delay after switching the displayed service")
    activation_delay: float = Field(0.3, description="Delay after nudging a page into the foreground")
    cooldown_delay: float = Field(2.0, description="Cool-down between services in sequential mode")

    # Background keep-alive
    keepalive_initial_delay: float = Field(2.0, description="Delay after page ready before applying keep-alive")
    keepalive_online_interval: float = Field(3.0, description="Interval re-asserting the online flag")
    keepalive_scroll_interval: float = Field(1.0, description="Interval nudging scroll while generating")


# Global settings instance
settings = Settings()
