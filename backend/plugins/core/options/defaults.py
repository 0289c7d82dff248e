"""Declared option defaults and input sanitization for concrete plugins."""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from structlog import get_logger
from utils.exceptions import BadRequestError

logger = get_logger(__name__)


class OptionsSchema(ABC):
    """
    The per-plugin half of an options store.

    Each concrete plugin declares which options it has (and what they default
    to), and how a submitted form is cleaned before being saved.
    """

    @abstractmethod
    def get_defaults(self) -> dict[str, Any]:
        """Returns a new dict of default option values on every call."""

    @abstractmethod
    def sanitize(self, data: Mapping[str, Any]) -> dict[str, Any]:
        """
        Validates submitted option fields.

        Returns only the recognised options that were actually submitted,
        cleaned and coerced. Raises BadRequestError on invalid values.
        """

    def get_default(self, option: str) -> Any | None:
        return self.get_defaults().get(option)


class AkamaiOptionsInput(BaseModel):
    """Validation model for the options form of the Akamai purge plugin."""

    model_config = ConfigDict(
        extra="ignore", populate_by_name=True, str_strip_whitespace=True
    )

    auth_method: Literal["edgerc", "env"] | None = None
    edgerc: str | None = None
    section: str | None = Field(default=None, min_length=1)
    hostname: str | None = None
    unique_sitecode: str | None = Field(default=None, alias="unique-sitecode")
    log_errors: bool | None = Field(default=None, alias="log-errors")
    log_purges: bool | None = Field(default=None, alias="log-purges")
    purge_type: Literal["invalidate", "delete"] | None = Field(
        default=None, alias="purge-type"
    )
    purge_network: Literal["all", "staging", "production"] | None = Field(
        default=None, alias="purge-network"
    )
    purge_related: bool | None = Field(default=None, alias="purge-related")
    emit_cache_tags: bool | None = Field(default=None, alias="emit-cache-tags")

    @field_validator("hostname")
    @classmethod
    def normalize_hostname(cls, value: str | None) -> str | None:
        if value is None:
            return value
        value = value.lower().removeprefix("https://").removeprefix("http://")
        return value.rstrip("/")


class AkamaiOptions(OptionsSchema):
    """Options of the Akamai cache-purge plugin."""

    def get_defaults(self) -> dict[str, Any]:
        return {
            "auth_method": "edgerc",
            "edgerc": "",
            "section": "default",
            "hostname": "",
            "unique-sitecode": "",
            "log-errors": False,
            "log-purges": False,
            "purge-type": "invalidate",
            "purge-network": "all",
            "purge-related": True,
            "emit-cache-tags": False,
        }

    def sanitize(self, data: Mapping[str, Any]) -> dict[str, Any]:
        try:
            parsed = AkamaiOptionsInput.model_validate(dict(data))
        except ValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in first["loc"])
            logger.info("Rejected options input", field=field, error=first["msg"])
            raise BadRequestError(f"Invalid value for '{field}': {first['msg']}")

        return parsed.model_dump(by_alias=True, exclude_unset=True)
