from dataclasses import dataclass, field, is_dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
import sys
import tomllib
from typing import Any, ClassVar, Final, TypeVar

import keyring
from keyring.errors import KeyringError
from loguru import logger

# --- Constants ---
APP_NAME = "holdingchart"
# Use a platform-agnostic user config directory
if sys.platform == "win32":
    CONFIG_DIR = Path.home() / "AppData" / "Roaming" / APP_NAME
else:
    CONFIG_DIR = Path.home() / ".config" / APP_NAME

CONFIG_FILE = CONFIG_DIR / "config.toml"

# --- Keyring Service Name ---
KEYRING_SERVICE_NAME = f"{APP_NAME}-api-keys"
KEYRING_USERNAME = "coingecko_key"

# --- Provider endpoints per operating mode ---
DEMO_MODE: Final[str] = "demo"
PRO_MODE: Final[str] = "pro"
_BASE_URLS: Final[dict[str, str]] = {
    DEMO_MODE: "https://api.coingecko.com/api/v3",
    PRO_MODE: "https://pro-api.coingecko.com/api/v3",
}
_API_KEY_HEADERS: Final[dict[str, str]] = {
    DEMO_MODE: "x-cg-demo-api-key",
    PRO_MODE: "x-cg-pro-api-key",
}

DEFAULT_CONFIG_TEMPLATE = """\
# HoldingChart Configuration File
# Uncomment and edit the values you want to override.
# The CoinGecko API key is stored in the system keyring, not here.

# [api]
# mode = "demo"              # "demo" or "pro"
# forced_coin_id = ""        # e.g. "tars-ai" to skip identifier resolution

# [holding]
# quantity = "30000"
# fee_percent = "1.49"

# [asset]
# currency = "eur"
"""

T = TypeVar("T")


@dataclass(frozen=True)
class ProviderConfig:
    """Immutable connection settings handed to every component that issues requests."""

    mode: str = DEMO_MODE
    api_key: str | None = None

    def __post_init__(self) -> None:
        if self.mode not in _BASE_URLS:
            err_msg = f"Unknown API mode '{self.mode}'. Expected one of {sorted(_BASE_URLS)}."
            raise ValueError(err_msg)

    @property
    def base_url(self) -> str:
        return _BASE_URLS[self.mode]

    @property
    def header_name(self) -> str:
        return _API_KEY_HEADERS[self.mode]

    @property
    def sanitized_key(self) -> str:
        """The API key stripped of non-ASCII characters and surrounding whitespace."""
        return "".join(c for c in (self.api_key or "") if ord(c) <= 0x7F).strip()


# --- Dataclass Models for Settings ---


@dataclass
class GeneralSettings:
    """General application settings."""

    log_level_console: str = "INFO"
    log_level_file: str = "DEBUG"
    log_directory: str = str(CONFIG_DIR / "logs")


@dataclass
class APISettings:
    """Settings for the CoinGecko API."""

    # Note: The API key itself is stored in the system keyring, not here.
    mode: str = DEMO_MODE
    forced_coin_id: str = ""
    request_timeout_s: float = 15.0
    chart_timeout_s: float = 20.0


@dataclass
class AssetSettings:
    """Describes the tracked asset and how to find its CoinGecko identifier."""

    search_query: str = "tai"
    symbol: str = "tai"
    name_keyword: str = "tars"
    candidate_ids: list[str] = field(
        default_factory=lambda: ["tars-ai", "tars-protocol", "tars"]
    )
    currency: str = "eur"


@dataclass
class HoldingSettings:
    """The size of the holding and the fee deducted when cashing out."""

    quantity: Decimal = Decimal("30000")
    fee_percent: Decimal = Decimal("1.49")


@dataclass
class UISettings:
    """Settings for the widget window."""

    refresh_interval_s: int = 60
    default_range_days: int = 1
    price_decimals: int = 5


@dataclass
class Settings:
    """Root container for all application settings."""

    general: GeneralSettings = field(default_factory=GeneralSettings)
    api: APISettings = field(default_factory=APISettings)
    asset: AssetSettings = field(default_factory=AssetSettings)
    holding: HoldingSettings = field(default_factory=HoldingSettings)
    ui: UISettings = field(default_factory=UISettings)

    _instance: ClassVar["Settings | None"] = None

    @classmethod
    def get_instance(cls) -> "Settings":
        """Returns the process-wide Settings object, loading it on first use."""
        if cls._instance is None:
            cls._instance = load_config()
        return cls._instance

    def provider_config(self) -> ProviderConfig:
        """Builds the immutable provider configuration, reading the key from the keyring."""
        return ProviderConfig(mode=self.api.mode, api_key=get_api_key())

    @property
    def forced_coin_id(self) -> str | None:
        return self.api.forced_coin_id.strip() or None


def _coerce(name: str, current: Any, value: Any) -> Any:
    """Converts a raw TOML value to the type of the field it overrides.

    Raises:
        ValueError: If the value cannot stand in for the field's current type.
    """
    if isinstance(current, Decimal):
        try:
            return Decimal(str(value))
        except InvalidOperation as e:
            err_msg = f"'{name}': '{value}' is not a valid decimal number."
            raise ValueError(err_msg) from e
    if isinstance(current, float) and type(value) is int:
        return float(value)
    if type(value) is not type(current):
        err_msg = (
            f"'{name}' must be of type {type(current).__name__}, "
            f"got {type(value).__name__} ({value!r})."
        )
        raise ValueError(err_msg)
    if isinstance(value, list):
        if not value or not all(isinstance(item, str) for item in value):
            err_msg = f"'{name}' must be a non-empty list of strings, got {value!r}."
            raise ValueError(err_msg)
    return value


def _update_dataclass(dc_instance: T, data: dict[str, Any]) -> T:
    """Recursively updates a dataclass instance from a dictionary."""
    for f in field_names(dc_instance):
        if f in data:
            field_value = getattr(dc_instance, f)
            if is_dataclass(field_value):
                if not isinstance(data[f], dict):
                    err_msg = f"'{f}' must be a table, got {data[f]!r}."
                    raise ValueError(err_msg)
                _update_dataclass(field_value, data[f])
            else:
                setattr(dc_instance, f, _coerce(f, field_value, data[f]))
    return dc_instance


def field_names(dc_instance: Any) -> list[str]:
    """Helper to get field names from a dataclass instance."""
    return [f.name for f in dc_instance.__dataclass_fields__.values()]


def load_config(path: Path = CONFIG_FILE) -> Settings:
    """Loads settings from a TOML file, merging them with defaults.

    If the config file does not exist, a commented template is written so the
    user has something to edit.

    Args:
        path: The path to the configuration file.

    Returns:
        A populated Settings object.
    """
    settings_obj = Settings()
    logger.info(f"Loading configuration from '{path}'...")

    if not path.exists():
        logger.warning(f"Configuration file not found. Creating default at '{path}'.")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(DEFAULT_CONFIG_TEMPLATE, encoding="utf-8")
        except OSError as e:
            logger.error(f"Failed to create default config file: {e}")
        return settings_obj

    try:
        with path.open("rb") as f:
            user_config = tomllib.load(f)
        _update_dataclass(settings_obj, user_config)
        # Validate the mode early rather than on the first request.
        ProviderConfig(mode=settings_obj.api.mode)
        logger.success("Successfully loaded user configuration.")
    except tomllib.TOMLDecodeError as e:
        logger.error(f"Error decoding TOML from '{path}': {e}")
        logger.warning("Using default settings due to configuration error.")
        settings_obj = Settings()
    except (OSError, ValueError) as e:
        logger.error(f"Invalid configuration in '{path}': {e}")
        logger.warning("Using default settings due to configuration error.")
        settings_obj = Settings()

    return settings_obj


# --- Keyring Management ---


def get_api_key() -> str | None:
    """Retrieves the CoinGecko API key from the system keyring.

    Returns:
        The stored key, or None if none is stored or the keyring is unavailable.
    """
    try:
        api_key = keyring.get_password(KEYRING_SERVICE_NAME, KEYRING_USERNAME)
    except KeyringError as e:
        logger.error(f"Could not retrieve the API key from keyring: {e}")
        return None
    if api_key:
        logger.debug("Retrieved CoinGecko API key from keyring.")
    return api_key


def set_api_key(api_key: str) -> None:
    """Stores the CoinGecko API key in the system keyring."""
    try:
        keyring.set_password(KEYRING_SERVICE_NAME, KEYRING_USERNAME, api_key)
        logger.info("Successfully stored the CoinGecko API key in keyring.")
    except KeyringError as e:
        logger.error(f"Could not store the API key in keyring: {e}")
