import os


def _env_flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class BaseConfig:
    """Base application configuration shared across environments."""

    APP_NAME: str = "pastelink"

    # Key-value store. Unset means the paste endpoints answer 503.
    STORE_URL: str | None = os.getenv("STORE_URL") or os.getenv("REDIS_URL")
    STORE_PASSWORD: str | None = os.getenv("STORE_PASSWORD")
    STORE_KEY_PREFIX: str = os.getenv("STORE_KEY_PREFIX", "paste:")
    STORE_TTL_GRACE_SECONDS: int = int(os.getenv("STORE_TTL_GRACE_SECONDS", "60"))
    STORE_CREATE_SCHEMA: bool = _env_flag("STORE_CREATE_SCHEMA")

    # Share links
    BASE_URL: str | None = os.getenv("BASE_URL")
    MAX_CONTENT_BYTES: int = int(os.getenv("MAX_CONTENT_BYTES", str(512 * 1024)))

    # Expiry sweeper (SQL store only)
    EXPIRY_SWEEP_INTERVAL_SECONDS: float = float(
        os.getenv("EXPIRY_SWEEP_INTERVAL_SECONDS", "30")
    )

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Honour the X-Test-Now-Ms header. Never enabled in production.
    TEST_MODE: bool = os.getenv("TEST_MODE") == "1"

    # Other Flask-style config flags
    TESTING: bool = False
    DEBUG: bool = False


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    STORE_CREATE_SCHEMA = _env_flag("STORE_CREATE_SCHEMA", "1")


class ProductionConfig(BaseConfig):
    DEBUG = False
    TEST_MODE = False


class TestingConfig(BaseConfig):
    TESTING = True
    TEST_MODE = True
    STORE_CREATE_SCHEMA = True

    STORE_URL: str | None = os.getenv("TEST_STORE_URL", "memory://")


CONFIG_BY_NAME = {
    "development": DevelopmentConfig,
    "dev": DevelopmentConfig,
    "production": ProductionConfig,
    "prod": ProductionConfig,
    "testing": TestingConfig,
    "test": TestingConfig,
}


def get_config(env_name: str | None) -> type[BaseConfig]:
    """Return a config class for the given environment name."""
    if not env_name:
        return DevelopmentConfig
    return CONFIG_BY_NAME.get(env_name, DevelopmentConfig)
