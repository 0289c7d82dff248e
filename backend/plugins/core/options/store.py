import asyncio
from typing import Any, Protocol

from options_core.tracing import get_tracer
from structlog import get_logger
from utils.exceptions import ServiceError

from .defaults import OptionsSchema

logger = get_logger(__name__)
tracer = get_tracer(__name__)

LEGACY_AUTH_FIELD = "method"
AUTH_FIELD = "auth_method"


class OptionsBackend(Protocol):
    """Persistence contract the store relies on. OptionsRepository satisfies it."""

    async def read(self, key: str) -> dict[str, Any] | None: ...

    async def write(self, key: str, options: dict[str, Any]) -> bool: ...


class OptionsStore:
    """
    Write-through cache of one plugin's options blob.

    A single instance is created at startup and shared by every request, so
    repeated reads within the process hit memory instead of the database.
    Reads go to the backend only on first use or when `fresh` is requested.
    Every update writes the backend first, then replaces the cached map.

    The fetch path also upgrades blobs saved before `method` was renamed to
    `auth_method`, persisting the upgraded blob right away.
    """

    def __init__(self, key: str, backend: OptionsBackend, schema: OptionsSchema):
        self.key = key
        self.schema = schema
        self._backend = backend
        self._options: dict[str, Any] | None = None
        self._lock = asyncio.Lock()

    @property
    def is_loaded(self) -> bool:
        return self._options is not None

    async def get_all(self, fresh: bool = False) -> dict[str, Any]:
        if self._options is not None and not fresh:
            logger.debug("Options cache hit", key=self.key)
            return dict(self._options)

        async with self._lock:
            if fresh or self._options is None:
                await self._fetch(fresh)
            else:
                logger.debug("Options loaded while waiting for lock", key=self.key)
            return dict(self._options)

    async def get(self, option: str, default: Any = None) -> Any:
        # An absent option is answered with `default` and nothing is stored.
        options = await self.get_all()
        if option in options:
            return options[option]
        return default

    async def update(self, options: dict[str, Any]) -> None:
        async with self._lock:
            await self._write_through(options)
        logger.info("Options updated", key=self.key, count=len(options))

    async def merge(self, changes: dict[str, Any]) -> dict[str, Any]:
        """
        Overlays `changes` on the current options and saves the result.

        Read, merge and write happen under one lock hold, so concurrent merges
        never drop each other's changes.
        """
        async with self._lock:
            if self._options is None:
                await self._fetch(fresh=False)
            options = {**self._options, **changes}
            await self._write_through(options)
        logger.info("Options merged", key=self.key, changed=sorted(changes))
        return dict(options)

    async def _fetch(self, fresh: bool) -> None:
        # Callers hold self._lock.
        with tracer.start_as_current_span("options.fetch"):
            logger.info("Loading options from database", key=self.key, fresh=fresh)
            stored = await self._backend.read(self.key)
            if stored is None:
                options = self.schema.get_defaults()
            else:
                options = dict(stored)

            if self._migrate(options):
                await self._write_through(options)
            else:
                self._options = dict(options)

    async def _write_through(self, options: dict[str, Any]) -> None:
        # Callers hold self._lock. The cache only changes once the backend has the data.
        if not await self._backend.write(self.key, options):
            logger.error("Options write was not acknowledged", key=self.key)
            raise ServiceError(f"Options for '{self.key}' were not saved")
        self._options = dict(options)

    def _migrate(self, options: dict[str, Any]) -> bool:
        if options.get(AUTH_FIELD) is not None:
            return False
        if options.get(LEGACY_AUTH_FIELD) is None:
            return False

        options[AUTH_FIELD] = options.pop(LEGACY_AUTH_FIELD)
        logger.info(
            "Migrating legacy options field",
            key=self.key,
            old=LEGACY_AUTH_FIELD,
            new=AUTH_FIELD,
        )
        return True
