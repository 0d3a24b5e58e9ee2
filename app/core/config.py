# app/core/config.py
import os
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional, Tuple
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

STORAGE_BACKENDS = ("local", "s3", "azure")
TOKEN_TRANSPORTS = ("header", "cookie")

# Upper bound for any scoped access grant, in seconds
MAX_GRANT_EXPIRE_SECONDS = 600


class SecurityConfigError(Exception):
    """Raised when security configuration is invalid"""
    pass


def validate_secret_key(key: Optional[str]) -> str:
    """Validate SECRET_KEY meets security requirements"""
    if not key:
        raise SecurityConfigError("SECRET_KEY environment variable is required")

    if len(key) < 32:
        raise SecurityConfigError("SECRET_KEY must be at least 32 characters long")

    has_upper = any(c.isupper() for c in key)
    has_lower = any(c.islower() for c in key)
    has_digit = any(c.isdigit() for c in key)
    has_special = any(not c.isalnum() for c in key)

    if not (has_upper and has_lower and has_digit and has_special):
        logger.warning("SECRET_KEY does not meet complexity requirements")

    return key


def validate_algorithm(algorithm: Optional[str]) -> str:
    """Validate JWT algorithm. Only symmetric algorithms fit a single server-held key."""
    if not algorithm:
        algorithm = "HS256"

    allowed_algorithms = ["HS256", "HS384", "HS512"]
    if algorithm not in allowed_algorithms:
        raise SecurityConfigError(f"Unsupported algorithm: {algorithm}")

    return algorithm


def validate_choice(name: str, value: Optional[str], choices: Tuple[str, ...], default: str) -> str:
    value = (value or default).strip().lower()
    if value not in choices:
        raise SecurityConfigError(f"{name} must be one of: {', '.join(choices)}")
    return value


def validate_positive_int(name: str, value: Optional[str], default: int) -> int:
    if not value:
        return default
    try:
        number = int(value)
    except ValueError:
        raise SecurityConfigError(f"{name} must be a valid integer")
    if number <= 0:
        raise SecurityConfigError(f"{name} must be positive")
    return number


def validate_grant_expire_seconds(expire_str: Optional[str]) -> int:
    """Scoped access grants stay short-lived: 1 second to 10 minutes."""
    expire_seconds = validate_positive_int("GRANT_EXPIRE_SECONDS", expire_str, 300)
    if expire_seconds > MAX_GRANT_EXPIRE_SECONDS:
        raise SecurityConfigError(
            f"GRANT_EXPIRE_SECONDS must not exceed {MAX_GRANT_EXPIRE_SECONDS}"
        )
    return expire_seconds


def _flag(value: Optional[str], default: bool = False) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration. Built once at startup and never mutated."""

    secret_key: str = field(repr=False)
    registration_secret: str = field(repr=False)
    mongo_database_url: str = field(repr=False)
    mongo_database_name: str = "music_db"
    algorithm: str = "HS256"
    token_transport: str = "header"
    session_cookie_name: str = "token"
    storage_backend: str = "local"
    upload_directory: str = "uploads"
    s3_bucket: Optional[str] = None
    s3_region: str = "us-east-1"
    s3_endpoint_url: Optional[str] = None
    aws_access_key_id: Optional[str] = field(default=None, repr=False)
    aws_secret_access_key: Optional[str] = field(default=None, repr=False)
    azure_connection_string: Optional[str] = field(default=None, repr=False)
    azure_container: Optional[str] = None
    grant_expire_seconds: int = 300
    grant_bind_client_ip: bool = False
    storage_timeout_seconds: int = 30
    max_file_size_mb: int = 100
    cors_origins: Tuple[str, ...] = ("*",)
    is_production: bool = False

    @property
    def uses_cookie_transport(self) -> bool:
        return self.token_transport == "cookie"


def _validate_storage(settings: Settings) -> None:
    if settings.storage_backend == "s3":
        if not settings.s3_bucket:
            raise SecurityConfigError("S3_BUCKET is required for the s3 storage backend")
        if not (settings.aws_access_key_id and settings.aws_secret_access_key):
            raise SecurityConfigError(
                "AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY are required for the s3 storage backend"
            )
    elif settings.storage_backend == "azure":
        if not settings.azure_connection_string:
            raise SecurityConfigError(
                "AZURE_STORAGE_CONNECTION_STRING is required for the azure storage backend"
            )
        if not settings.azure_container:
            raise SecurityConfigError("AZURE_STORAGE_CONTAINER is required for the azure storage backend")


def load_settings(environ=None) -> Settings:
    """Read and validate configuration from the environment."""
    env = os.environ if environ is None else environ

    try:
        mongo_url = env.get("MONGO_DATABASE_URL")
        if not mongo_url:
            raise SecurityConfigError("MONGO_DATABASE_URL environment variable is required")

        registration_secret = env.get("REGISTRATION_SECRET")
        if not registration_secret:
            raise SecurityConfigError("REGISTRATION_SECRET environment variable is required")

        is_production = env.get("ENVIRONMENT", "development").lower() == "production"
        origins = tuple(
            origin.strip() for origin in env.get("CORS_ORIGINS", "*").split(",") if origin.strip()
        ) or ("*",)

        settings = Settings(
            secret_key=validate_secret_key(env.get("SECRET_KEY")),
            registration_secret=registration_secret,
            mongo_database_url=mongo_url,
            mongo_database_name=env.get("MONGO_DATABASE_NAME", "music_db"),
            algorithm=validate_algorithm(env.get("ALGORITHM")),
            token_transport=validate_choice("TOKEN_TRANSPORT", env.get("TOKEN_TRANSPORT"), TOKEN_TRANSPORTS, "header"),
            session_cookie_name=env.get("SESSION_COOKIE_NAME", "token"),
            storage_backend=validate_choice("STORAGE_BACKEND", env.get("STORAGE_BACKEND"), STORAGE_BACKENDS, "local"),
            upload_directory=env.get("UPLOAD_DIRECTORY", "uploads"),
            s3_bucket=env.get("S3_BUCKET"),
            s3_region=env.get("S3_REGION", "us-east-1"),
            s3_endpoint_url=env.get("S3_ENDPOINT_URL") or None,
            aws_access_key_id=env.get("AWS_ACCESS_KEY_ID"),
            aws_secret_access_key=env.get("AWS_SECRET_ACCESS_KEY"),
            azure_connection_string=env.get("AZURE_STORAGE_CONNECTION_STRING"),
            azure_container=env.get("AZURE_STORAGE_CONTAINER"),
            grant_expire_seconds=validate_grant_expire_seconds(env.get("GRANT_EXPIRE_SECONDS")),
            grant_bind_client_ip=_flag(env.get("GRANT_BIND_CLIENT_IP")),
            storage_timeout_seconds=validate_positive_int("STORAGE_TIMEOUT_SECONDS", env.get("STORAGE_TIMEOUT_SECONDS"), 30),
            max_file_size_mb=validate_positive_int("MAX_FILE_SIZE_MB", env.get("MAX_FILE_SIZE_MB"), 100),
            cors_origins=origins,
            is_production=is_production,
        )
        _validate_storage(settings)

    except SecurityConfigError as e:
        logger.error(f"Security configuration error: {e}")
        raise

    logger.info(
        f"Configuration validated: storage={settings.storage_backend}, transport={settings.token_transport}"
    )
    return settings


@lru_cache
def get_settings() -> Settings:
    return load_settings()


# Security headers configuration
SECURITY_HEADERS = {
    "Cache-Control": "no-store, private",
    "Referrer-Policy": "no-referrer",
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
}

HSTS_HEADER = "max-age=31536000; includeSubDomains"
