"""Plugin autodiscovery: every package under plugins/ with an endpoint.py is mounted."""

import importlib
from pathlib import Path
from typing import Any

from fastapi import APIRouter, FastAPI
from structlog import get_logger

logger = get_logger(__name__)

PLUGINS_ROOT = Path(__file__).parent


class PluginBase:
    """A discovered plugin: its route prefix, router and declared metadata."""

    def __init__(self, name: str, router: APIRouter, metadata: dict[str, Any] | None = None):
        self.name = name
        self.router = router
        self.metadata = metadata or {}

    @property
    def prefix(self) -> str:
        return f"/{self.name}"

    @property
    def version(self) -> str:
        return self.metadata.get("version", "0.0.0")


class PluginDiscovery:
    """Finds plugin packages and registers their routers on the app."""

    def __init__(self, root: Path = PLUGINS_ROOT, excluded_plugins: list[str] | None = None):
        self.root = root
        self.excluded_plugins = set(excluded_plugins or [])
        self.plugins: dict[str, PluginBase] = {}

    def discover(self) -> dict[str, PluginBase]:
        for endpoint_file in sorted(self.root.rglob("endpoint.py")):
            relative = endpoint_file.parent.relative_to(self.root)
            if any(part.startswith("_") for part in relative.parts):
                continue

            name = relative.as_posix()
            if name in self.excluded_plugins:
                logger.info("Skipping excluded plugin", plugin=name)
                continue

            plugin = self._load(name)
            if plugin:
                self.plugins[name] = plugin

        return self.plugins

    def _load(self, name: str) -> PluginBase | None:
        module_path = "plugins." + name.replace("/", ".")
        endpoint_module = importlib.import_module(f"{module_path}.endpoint")

        router = getattr(endpoint_module, "router", None)
        if not isinstance(router, APIRouter):
            logger.warning("No valid router found", plugin=name)
            return None

        package = importlib.import_module(module_path)
        metadata = dict(getattr(package, "PLUGIN_METADATA", {}))
        return PluginBase(name, router, metadata)

    def register(self, app: FastAPI) -> None:
        for plugin in self.plugins.values():
            app.include_router(
                plugin.router, prefix=plugin.prefix, tags=[plugin.name.title()]
            )
            logger.info(
                "Registered plugin routes", plugin=plugin.name, version=plugin.version
            )


def init_plugins(app: FastAPI, excluded_plugins: list[str] | None = None) -> dict[str, PluginBase]:
    """Discover every plugin and mount its routes on the app."""
    discovery = PluginDiscovery(excluded_plugins=excluded_plugins)
    plugins = discovery.discover()
    discovery.register(app)
    logger.info("Plugin system initialized", count=len(plugins))
    return plugins
