# backend/plugins/core/options/service.py
from collections.abc import Mapping
from typing import Any

from fastapi import Request
from motor.motor_asyncio import AsyncIOMotorDatabase
from structlog import get_logger
from utils.nonces import NonceManager

from . import PLUGIN_METADATA
from .defaults import AkamaiOptions, OptionsSchema
from .models import RequestContext
from .nonce import NonceGate
from .repository import OptionsRepository
from .store import OptionsStore

logger = get_logger(__name__)

OPTIONS_COLLECTION = "options"


class OptionsService:
    """Public read/write API for a plugin's options, plus its nonce check."""

    def __init__(
        self,
        store: OptionsStore,
        gate: NonceGate,
        plugin_name: str,
        version: str,
    ):
        self.store = store
        self.gate = gate
        self._plugin_name = plugin_name
        self._version = version

    @property
    def schema(self) -> OptionsSchema:
        return self.store.schema

    async def get_option(self, option: str, default: Any = None) -> Any:
        return await self.store.get(option, default)

    async def get_options(self, fresh: bool = False) -> dict[str, Any]:
        return await self.store.get_all(fresh)

    def get_defaults(self) -> dict[str, Any]:
        return self.schema.get_defaults()

    def get_default(self, option: str) -> Any | None:
        return self.schema.get_default(option)

    def sanitize(self, data: Mapping[str, Any]) -> dict[str, Any]:
        return self.schema.sanitize(data)

    async def update(self, options: dict[str, Any]) -> None:
        await self.store.update(options)

    async def merge(self, changes: dict[str, Any]) -> dict[str, Any]:
        return await self.store.merge(changes)

    def check(self, context: RequestContext) -> bool:
        return self.gate.verify(context)

    def get_nonce(self) -> str:
        return self.gate.get_nonce()

    def get_plugin_name(self) -> str:
        return self._plugin_name

    def get_version(self) -> str:
        return self._version


def build_options_service(
    database: AsyncIOMotorDatabase,
    plugin_name: str,
    nonces: NonceManager,
    version: str | None = None,
    schema: OptionsSchema | None = None,
) -> OptionsService:
    """Wires the application-wide options service. Called once at startup."""
    repository = OptionsRepository(database[OPTIONS_COLLECTION])
    store = OptionsStore(plugin_name, repository, schema or AkamaiOptions())
    gate = NonceGate(plugin_name, nonces)
    version = version or PLUGIN_METADATA["version"]
    logger.info("Options service ready", plugin=plugin_name, version=version)
    return OptionsService(store, gate, plugin_name, version)


# --- Dependency Injection ---


def get_options_service(request: Request) -> OptionsService:
    """FastAPI dependency returning the service created during startup."""
    return request.app.state.options_service
