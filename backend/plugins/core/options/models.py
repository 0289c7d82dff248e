from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class OptionsDocument(BaseModel):
    """Represents a plugin's options blob as stored in the database."""

    key: str = Field(..., description="Plugin identity the options belong to, e.g. 'akamai'")
    value: dict[str, Any] = Field(
        default_factory=dict,
        description="Option name to value mapping. Values must be JSON-serializable.",
    )
    created_at: datetime | None = None
    updated_at: datetime | None = None


class RequestContext(BaseModel):
    """The parts of an incoming request the nonce gate looks at."""

    is_async: bool = False
    fields: dict[str, Any] = Field(default_factory=dict)
    origin: str | None = None
    referer: str | None = None

    def field(self, name: str) -> str | None:
        """Returns a submitted field only if it was sent as a string."""
        value = self.fields.get(name)
        return value if isinstance(value, str) else None


class OptionsResponse(BaseModel):
    plugin: str
    version: str
    options: dict[str, Any]


class OptionValueResponse(BaseModel):
    key: str
    value: Any


class DefaultsResponse(BaseModel):
    defaults: dict[str, Any]


class NonceResponse(BaseModel):
    """Everything a form needs to embed the nonce field."""

    name: str
    action: str
    nonce: str
