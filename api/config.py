"""
Environment-aware configuration.
Signing keys and token lifetimes are read once here and handed to the session
manager by the app factory.
"""
import os
from dotenv import load_dotenv
from datetime import timedelta

load_dotenv()  # Read .env if present


def _env_bool(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes")


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")  # Set a strong key in production
    DEBUG = False
    TESTING = False
    # CORS: in dev we usually allow '*', in prod supply a comma-separated list in env
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    APP_ENV = os.getenv("APP_ENV", "dev")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///media-share.db")

    # jwt configurations
    JWT_SECRET = os.getenv("JWT_SECRET", "dev-access-secret-change-me-0123456789")
    JWT_REFRESH_SECRET = os.getenv("JWT_REFRESH_SECRET") or JWT_SECRET
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_ISSUER = os.getenv("JWT_ISSUER", "media-share-api")
    ACCESS_TOKEN_EXPIRES = timedelta(seconds=int(os.getenv("ACCESS_TOKEN_EXPIRES_SECONDS", "900")))
    REFRESH_TOKEN_EXPIRES = timedelta(seconds=int(os.getenv("REFRESH_TOKEN_EXPIRES_SECONDS", "864000")))

    # cookies carrying tokens are always httpOnly; secure only where https is guaranteed
    ACCESS_COOKIE_NAME = "accessToken"
    REFRESH_COOKIE_NAME = "refreshToken"
    COOKIE_SECURE = _env_bool("COOKIE_SECURE", "0")
    COOKIE_SAMESITE = os.getenv("COOKIE_SAMESITE", "Lax")

    # per-request deadline handed to every store call
    REQUEST_TIMEOUT_SECONDS = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "10"))
    REVOKE_SESSIONS_ON_PASSWORD_CHANGE = _env_bool("REVOKE_SESSIONS_ON_PASSWORD_CHANGE", "0")


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    # In dev, propagate exceptions so our error handler has full context
    PROPAGATE_EXCEPTIONS = True


class TestingConfig(BaseConfig):
    TESTING = True
    DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite:///media-share-test.db")
    JWT_SECRET = "test-access-secret-0123456789abcdef0123"
    JWT_REFRESH_SECRET = "test-refresh-secret-0123456789abcdef012"
    COOKIE_SECURE = False


class ProductionConfig(BaseConfig):
    DEBUG = False
    COOKIE_SECURE = _env_bool("COOKIE_SECURE", "1")


def get_config(name: str | None):
    """
    Select config class.
    - If name is provided, choose by name.
    - Else choose based on APP_ENV (dev/test/prod).
    """
    if name:
        name = name.lower()
    env = (name or os.getenv("APP_ENV", "dev")).lower()
    if env in ["prod", "production"]:
        return ProductionConfig
    if env in ["test", "testing"]:
        return TestingConfig
    return DevelopmentConfig
