"""Configuration module for the leasing API client."""

import os
from dataclasses import dataclass, field
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass
class ApiConfig:
    """Backend connection settings."""
    base_url: str = field(default_factory=lambda: os.getenv("LEASE_API_BASE_URL", "http://localhost:5000/api"))
    timeout_seconds: float = field(default_factory=lambda: float(os.getenv("LEASE_API_TIMEOUT", "30")))
    refresh_path: str = "/auth/refresh"


@dataclass
class StorageConfig:
    """Where the access token and identity survive restarts."""
    credentials_file: str = field(
        default_factory=lambda: os.getenv("LEASE_CREDENTIALS_FILE", "data/.leaseclient_credentials.json")
    )


@dataclass
class AuthFlowConfig:
    """Credential lifecycle and verification flow settings."""
    # Share one in-flight refresh between concurrently failing requests
    refresh_single_flight: bool = field(default_factory=lambda: _env_bool("REFRESH_SINGLE_FLIGHT", "true"))

    login_path: str = field(default_factory=lambda: os.getenv("LOGIN_PATH", "/login"))
    reset_redirect_delay_seconds: float = field(
        default_factory=lambda: float(os.getenv("RESET_REDIRECT_DELAY_SECONDS", "3"))
    )

    email_code_length: int = 6
    phone_otp_min_length: int = 4
    phone_otp_max_length: int = 6
    password_min_length: int = 8


@dataclass
class LoggingConfig:
    level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))


@dataclass
class Config:
    """Main configuration container."""
    api: ApiConfig = field(default_factory=ApiConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    auth: AuthFlowConfig = field(default_factory=AuthFlowConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_config() -> Config:
    """Load configuration from environment variables."""
    return Config()
