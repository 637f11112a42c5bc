import os
from pathlib import Path

from dotenv import load_dotenv


_PACKAGE_DIR = Path(__file__).resolve().parent
_PROJECT_ROOT = _PACKAGE_DIR.parent

# Root .env is canonical; billsettle/.env remains a fallback for local overrides.
load_dotenv(_PROJECT_ROOT / ".env")
load_dotenv(_PACKAGE_DIR / ".env")


_PLACEHOLDER_SECRET = "change-me-in-production"


def _first_non_empty_env(*names: str, default: str) -> str:
    """Returns the first non-empty env var value from `names`, else `default`."""
    for name in names:
        value = os.getenv(name)
        if value is not None and value != "":
            return value
    return default


def _parse_int_env(*names: str, default: int) -> int:
    """Parses the first non-empty env var in `names` as int, else returns `default`."""
    raw = _first_non_empty_env(*names, default=str(default))
    try:
        return int(raw)
    except (TypeError, ValueError):
        return default


def _settlement_currency() -> str:
    """
    Resolves the default settlement currency code.

    Used only when a posted snapshot omits `settlement_currency`.
    Normalised the same way receipt currencies are (trimmed, upper-case).
    """
    return _first_non_empty_env("SETTLEMENT_CURRENCY", default="USD").strip().upper()


class BaseConfig:

    SECRET_KEY: str = _first_non_empty_env("SECRET_KEY", default=_PLACEHOLDER_SECRET)

    JSON_SORT_KEYS: bool = False

    # Currency every receipt is normalised into when the snapshot does not say.
    SETTLEMENT_CURRENCY: str = _settlement_currency()

    # Upper bound on a posted session snapshot (bytes). Default: 1 MiB.
    MAX_CONTENT_LENGTH: int = _parse_int_env("MAX_SNAPSHOT_BYTES", default=1024 * 1024)

    LOG_LEVEL: str = _first_non_empty_env("LOG_LEVEL", default="INFO").upper()

    CORS_ALLOW_ALL: bool = False


class DevelopmentConfig(BaseConfig):
    DEBUG:   bool = True
    TESTING: bool = False

    LOG_LEVEL: str = _first_non_empty_env("LOG_LEVEL", default="DEBUG").upper()
    CORS_ALLOW_ALL: bool = True


class TestingConfig(BaseConfig):

    DEBUG:   bool = True
    TESTING: bool = True

    # Tests pin the currency so a developer's .env cannot change expectations.
    SETTLEMENT_CURRENCY: str = "USD"
    LOG_LEVEL: str = "WARNING"
    CORS_ALLOW_ALL: bool = True


class ProductionConfig(BaseConfig):

    DEBUG:   bool = False
    TESTING: bool = False


def validate_production_config(app) -> None:
    """
    Fail-fast guard for production configuration.

    Must be called in the app factory immediately after
    app.config.from_object(ProductionConfig):

        app.config.from_object(ProductionConfig)
        validate_production_config(app)   # raises ValueError if misconfigured

    Raises ValueError if any required production value is missing or insecure.
    """
    if app.config.get("SECRET_KEY") == _PLACEHOLDER_SECRET:
        raise ValueError(
            "SECRET_KEY must be set to a strong random value in production. "
            "Do not use the default placeholder."
        )

    currency = app.config.get("SETTLEMENT_CURRENCY") or ""
    if len(currency) != 3 or not currency.isalpha():
        raise ValueError(
            f"SETTLEMENT_CURRENCY must be a 3-letter currency code, got {currency!r}."
        )


# ── Config selector ────────────────────────────────────────────────────────
#
# Used by the app factory:
#   from billsettle.config import config_by_name
#   app.config.from_object(config_by_name[flask_env])
# ──────────────────────────────────────────────────────────────────────────

config_by_name: dict[str, type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing":     TestingConfig,
    "production":  ProductionConfig,
}

# Convenience alias: resolves the active config class from FLASK_ENV.
# Defaults to development if the variable is not set.
ActiveConfig: type[BaseConfig] = config_by_name.get(
    os.getenv("FLASK_ENV", "development"),
    DevelopmentConfig,
)
