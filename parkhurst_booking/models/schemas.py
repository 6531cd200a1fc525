from dataclasses import dataclass
from datetime import date

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_BASE_URL = "https://parkhurst.skedda.com/booking"
DEFAULT_LOGIN_URL = "https://parkhurst.skedda.com/login"
DEFAULT_BOOK_IN_ADVANCE_DAYS = 15


class ConfigModel(BaseModel):
    """Base for config-file sections: camelCase keys in JSON, snake_case in Python."""

    model_config = ConfigDict(populate_by_name=True)


class Facility(ConfigModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True, coerce_numbers_to_str=True)

    space_id: str = Field(..., alias="spaceId", description="Site-assigned space identifier")
    name: str = Field(..., description="Human-readable facility name")


class Credentials(ConfigModel):
    email: str = ""
    password: str = ""


class BookingDefaults(ConfigModel):
    signature: str = "ZZ"
    buffer_minutes: int = Field(default=15, alias="bufferMinutes", ge=0)
    headless: bool = True
    timeout: int = Field(default=30000, description="Page timeout in milliseconds")
    book_in_advance_days: int | None = Field(default=None, alias="bookInAdvanceDays")


class SiteUrls(ConfigModel):
    base_url: str = Field(default=DEFAULT_BASE_URL, alias="baseUrl")
    login_url: str | None = Field(default=DEFAULT_LOGIN_URL, alias="loginUrl")


class BookingConfig(ConfigModel):
    credentials: Credentials = Field(default_factory=Credentials)
    defaults: BookingDefaults = Field(default_factory=BookingDefaults)
    facilities: dict[str, Facility] = Field(default_factory=dict)
    urls: SiteUrls = Field(default_factory=SiteUrls)


class BookingRequest(BaseModel):
    """A single, fully resolved booking attempt."""

    model_config = ConfigDict(frozen=True)

    facility_key: str
    facility: Facility
    booking_date: date
    start_time: str = Field(..., description="Local start time, HH:MM")
    end_time: str = Field(..., description="Local end time, HH:MM")
    signature: str
    title: str | None = Field(default=None, description="Overrides the generated title")
    headless: bool = True


@dataclass(frozen=True)
class ProfileCredentials:
    email: str
    password: str
    signature: str | None = None


@dataclass(frozen=True)
class ProfileNotFound:
    """Outcome of a profile lookup when required variables are missing."""

    profile: str
    missing: tuple[str, ...]

    @property
    def message(self) -> str:
        return (
            f"Credentials not found for profile {self.profile}. "
            f"Expected environment variable(s): {', '.join(self.missing)}"
        )
