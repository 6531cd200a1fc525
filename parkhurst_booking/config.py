import json
import logging
import os
import re
from collections.abc import Callable, Mapping
from pathlib import Path

from dotenv import dotenv_values
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings

from parkhurst_booking.exceptions import ConfigError
from parkhurst_booking.models.schemas import (
    DEFAULT_BASE_URL,
    DEFAULT_BOOK_IN_ADVANCE_DAYS,
    DEFAULT_LOGIN_URL,
    BookingConfig,
    Facility,
    ProfileCredentials,
    ProfileNotFound,
)

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class Settings(BaseSettings):
    """
    Process-wide settings. Credential overrides (BOOKING_EMAIL and friends)
    and profile variables are read per call by load_config instead.
    """

    booking_config_path: str = "config/config.json"
    booking_failure_log: str = "booking_errors.log"
    booking_timezone: str = ""

    chromedriver_path: str = ""
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()

EnvLookup = Callable[[str], str | None]


def default_environment() -> Mapping[str, str | None]:
    """Process environment layered over the values in `.env`."""
    values: dict[str, str | None] = dict(dotenv_values(".env"))
    values.update(os.environ)
    return values


def profile_env_key(profile: str) -> str:
    """Normalize a profile email into an environment variable fragment."""
    return re.sub(r"[^A-Za-z0-9]", "_", profile).upper()


def resolve_profile_credentials(
    profile: str, getenv: EnvLookup
) -> ProfileCredentials | ProfileNotFound:
    """
    Look up the credential set for a named profile.

    Reads PROFILE_<KEY>_USERNAME, PROFILE_<KEY>_PASSWORD and the optional
    PROFILE_<KEY>_SIGNATURE through `getenv`, where <KEY> is the normalized
    profile email.

    Args:
        profile: Profile identifier (an email address)
        getenv: Accessor returning the variable value or None

    Returns:
        ProfileCredentials when username and password are both set,
        otherwise ProfileNotFound naming the missing variables.
    """
    key = profile_env_key(profile)
    username_key = f"PROFILE_{key}_USERNAME"
    password_key = f"PROFILE_{key}_PASSWORD"
    signature_key = f"PROFILE_{key}_SIGNATURE"

    username = getenv(username_key)
    password = getenv(password_key)

    missing = tuple(name for name, value in ((username_key, username), (password_key, password)) if not value)
    if missing:
        return ProfileNotFound(profile=profile, missing=missing)

    return ProfileCredentials(
        email=username or "",
        password=password or "",
        signature=getenv(signature_key) or None,
    )


def _format_pydantic_error(error: PydanticValidationError) -> str:
    details = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"])
        details.append(f"{location}: {item['msg']}")
    return "; ".join(details)


def load_config(
    config_path: str | Path | None = None,
    profile: str | None = None,
    environ: Mapping[str, str | None] | None = None,
) -> BookingConfig:
    """
    Load the JSON config file and apply credential overrides.

    With a profile, the profile's credentials (and signature, when set) replace
    the file's. Without one, BOOKING_EMAIL, BOOKING_PASSWORD and
    BOOKING_SIGNATURE override the file when present.
    """
    path = Path(config_path or settings.booking_config_path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigError(f"Failed to parse config file: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError("Failed to parse config file: top level must be a JSON object")

    missing_sections = [s for s in ("defaults", "credentials", "facilities", "urls") if s not in raw]
    if missing_sections:
        raise ConfigError(f"Missing {missing_sections[0]} section in config")

    try:
        config = BookingConfig.model_validate(raw)
    except PydanticValidationError as e:
        raise ConfigError(f"Invalid config file {path}: {_format_pydantic_error(e)}") from e

    env = environ if environ is not None else default_environment()

    if profile:
        resolved = resolve_profile_credentials(profile, env.get)
        if isinstance(resolved, ProfileNotFound):
            raise ConfigError(resolved.message)
        config.credentials.email = resolved.email
        config.credentials.password = resolved.password
        if resolved.signature:
            config.defaults.signature = resolved.signature
        logger.debug(f"Loaded credentials for profile {profile}")
    else:
        if env.get("BOOKING_EMAIL"):
            config.credentials.email = env["BOOKING_EMAIL"] or ""
        if env.get("BOOKING_PASSWORD"):
            config.credentials.password = env["BOOKING_PASSWORD"] or ""
        if env.get("BOOKING_SIGNATURE"):
            config.defaults.signature = env["BOOKING_SIGNATURE"] or ""

    logger.info(f"Configuration loaded from {path}")
    return config


def validate_config(config: BookingConfig) -> None:
    """Semantic checks beyond the schema. Raises ConfigError on the first problem."""
    days = config.defaults.book_in_advance_days
    if days is not None and days < 0:
        raise ConfigError("config.defaults.bookInAdvanceDays must be a non-negative number if provided")

    if not config.credentials.email:
        raise ConfigError("Missing email in credentials")
    if not config.credentials.password:
        raise ConfigError("Missing password in credentials")
    if not EMAIL_PATTERN.match(config.credentials.email):
        raise ConfigError("Invalid email format in credentials")

    if not config.urls.base_url:
        raise ConfigError("Missing baseUrl in urls section")

    if not config.facilities:
        raise ConfigError("No facilities defined in config")

    for key, facility in config.facilities.items():
        if not facility.space_id:
            raise ConfigError(f"Missing spaceId for facility: {key}")
        if not facility.name:
            raise ConfigError(f"Missing name for facility: {key}")


def get_facility(config: BookingConfig, facility_key: str) -> Facility:
    facility = config.facilities.get(facility_key)
    if facility is None:
        available = ", ".join(config.facilities)
        raise ConfigError(f"Facility '{facility_key}' not found. Available facilities: {available}")
    return facility


def list_facilities(config: BookingConfig) -> list[tuple[str, Facility]]:
    return list(config.facilities.items())


def sample_config() -> dict:
    return {
        "credentials": {"email": "your-email@example.com", "password": "your-password"},
        "defaults": {
            "signature": "ZZ",
            "bufferMinutes": 15,
            "headless": True,
            "bookInAdvanceDays": DEFAULT_BOOK_IN_ADVANCE_DAYS,
            "timeout": 30000,
        },
        "facilities": {
            "tennis_lower": {"spaceId": "1244466", "name": "Tennis - Lower Court Whole"},
        },
        "urls": {"baseUrl": DEFAULT_BASE_URL, "loginUrl": DEFAULT_LOGIN_URL},
    }


def create_sample_config(output_path: str | Path) -> Path:
    """Write a starter config file, creating parent directories as needed."""
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(sample_config(), indent=2) + "\n", encoding="utf-8")
    logger.info(f"Sample config written to {path}")
    return path
