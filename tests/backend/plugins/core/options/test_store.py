import asyncio

import pytest
from plugins.core.options.defaults import AkamaiOptions, OptionsSchema
from plugins.core.options.store import OptionsStore
from utils.exceptions import ServiceError

from tests.backend.conftest import PLUGIN_NAME, InMemoryOptionsBackend


class StandardAuthOptions(OptionsSchema):
    def get_defaults(self):
        return {"auth_method": "standard"}

    def sanitize(self, data):
        return dict(data)


class NoDefaults(OptionsSchema):
    def get_defaults(self):
        return {}

    def sanitize(self, data):
        return dict(data)


@pytest.mark.asyncio
async def test_missing_option_returns_default_without_writing():
    backend = InMemoryOptionsBackend({PLUGIN_NAME: {"hostname": "example.com"}})
    store = OptionsStore(PLUGIN_NAME, backend, AkamaiOptions())

    assert await store.get("not-an-option", "fallback") == "fallback"
    assert await store.get("not-an-option") is None

    assert backend.writes == []
    assert backend.stored[PLUGIN_NAME] == {"hostname": "example.com"}
    assert "not-an-option" not in await store.get_all()


@pytest.mark.asyncio
async def test_present_option_wins_over_default():
    backend = InMemoryOptionsBackend({PLUGIN_NAME: {"section": "prod"}})
    store = OptionsStore(PLUGIN_NAME, backend, AkamaiOptions())

    assert await store.get("section", "default") == "prod"


@pytest.mark.asyncio
async def test_update_is_visible_to_cached_reads(store: OptionsStore, backend):
    options = {"auth_method": "env", "hostname": "www.example.com"}

    await store.update(options)

    assert await store.get_all() == options
    assert backend.stored[PLUGIN_NAME] == options
    assert backend.reads == []


@pytest.mark.asyncio
async def test_update_does_not_merge(store: OptionsStore):
    await store.update({"a": 1, "b": 2})
    await store.update({"c": 3})

    assert await store.get_all() == {"c": 3}


@pytest.mark.asyncio
async def test_cached_reads_hit_backend_once(store: OptionsStore, backend):
    await store.get_all()
    await store.get_all()
    await store.get("hostname")

    assert backend.reads == [PLUGIN_NAME]


@pytest.mark.asyncio
async def test_fresh_read_bypasses_cache(store: OptionsStore, backend):
    await store.get_all()
    backend.stored[PLUGIN_NAME] = {"auth_method": "env"}

    assert (await store.get_all())["auth_method"] == "edgerc"
    assert await store.get_all(fresh=True) == {"auth_method": "env"}
    assert len(backend.reads) == 2


@pytest.mark.asyncio
async def test_defaults_are_returned_but_not_persisted_when_nothing_stored():
    backend = InMemoryOptionsBackend()
    store = OptionsStore(PLUGIN_NAME, backend, StandardAuthOptions())

    assert await store.get_all() == {"auth_method": "standard"}
    assert backend.writes == []
    assert PLUGIN_NAME not in backend.stored


@pytest.mark.asyncio
async def test_empty_stored_blob_is_cached():
    backend = InMemoryOptionsBackend({PLUGIN_NAME: {}})
    store = OptionsStore(PLUGIN_NAME, backend, NoDefaults())

    assert await store.get_all() == {}
    assert await store.get_all() == {}
    assert len(backend.reads) == 1


@pytest.mark.asyncio
async def test_legacy_method_field_is_migrated_and_persisted():
    backend = InMemoryOptionsBackend({PLUGIN_NAME: {"method": "legacy", "other": 1}})
    store = OptionsStore(PLUGIN_NAME, backend, NoDefaults())

    options = await store.get_all(fresh=True)

    assert options == {"auth_method": "legacy", "other": 1}
    assert backend.stored[PLUGIN_NAME] == {"auth_method": "legacy", "other": 1}
    assert len(backend.writes) == 1

    # The next fetch sees the new name and has nothing left to migrate.
    await store.get_all(fresh=True)
    assert len(backend.writes) == 1


@pytest.mark.asyncio
async def test_existing_auth_method_is_left_alone():
    backend = InMemoryOptionsBackend(
        {PLUGIN_NAME: {"method": "legacy", "auth_method": "edgerc"}}
    )
    store = OptionsStore(PLUGIN_NAME, backend, NoDefaults())

    options = await store.get_all()

    assert options == {"method": "legacy", "auth_method": "edgerc"}
    assert backend.writes == []


@pytest.mark.asyncio
async def test_migration_does_not_run_on_cache_hits(store: OptionsStore, backend):
    await store.update({"method": "legacy"})

    assert await store.get_all() == {"method": "legacy"}
    assert len(backend.writes) == 1


@pytest.mark.asyncio
async def test_returned_map_is_a_copy(store: OptionsStore):
    await store.update({"hostname": "example.com"})

    options = await store.get_all()
    options["hostname"] = "changed"

    assert await store.get("hostname") == "example.com"


@pytest.mark.asyncio
async def test_backend_errors_propagate():
    class FailingBackend(InMemoryOptionsBackend):
        async def read(self, key):
            raise ServiceError("Database error while reading options for 'akamai'")

    failing = OptionsStore(PLUGIN_NAME, FailingBackend(), AkamaiOptions())

    with pytest.raises(ServiceError):
        await failing.get_all()
    assert failing.is_loaded is False


@pytest.mark.asyncio
async def test_concurrent_updates_leave_cache_matching_backend(store: OptionsStore, backend):
    await asyncio.gather(*(store.update({"n": n}) for n in range(10)))

    assert await store.get_all() == backend.stored[PLUGIN_NAME]


class YieldingBackend(InMemoryOptionsBackend):
    """Gives other tasks a chance to run inside every read and write."""

    async def read(self, key):
        await asyncio.sleep(0)
        return await super().read(key)

    async def write(self, key, options):
        await asyncio.sleep(0)
        return await super().write(key, options)


@pytest.mark.asyncio
async def test_concurrent_merges_keep_every_change():
    backend = YieldingBackend({PLUGIN_NAME: {"section": "a", "hostname": ""}})
    store = OptionsStore(PLUGIN_NAME, backend, AkamaiOptions())

    await asyncio.gather(
        store.merge({"section": "prod"}),
        store.merge({"hostname": "cdn.example.com"}),
    )

    expected = {"section": "prod", "hostname": "cdn.example.com"}
    assert backend.stored[PLUGIN_NAME] == expected
    assert await store.get_all() == expected


@pytest.mark.asyncio
async def test_merge_returns_saved_map(store: OptionsStore, backend):
    await store.update({"section": "a", "hostname": "old.example.com"})

    merged = await store.merge({"hostname": "new.example.com"})

    assert merged == {"section": "a", "hostname": "new.example.com"}
    assert backend.stored[PLUGIN_NAME] == merged


@pytest.mark.asyncio
async def test_concurrent_cold_reads_hit_backend_once():
    backend = YieldingBackend({PLUGIN_NAME: {"section": "prod"}})
    store = OptionsStore(PLUGIN_NAME, backend, AkamaiOptions())

    first, second = await asyncio.gather(store.get_all(), store.get_all())

    assert first == second == {"section": "prod"}
    assert backend.reads == [PLUGIN_NAME]


@pytest.mark.asyncio
async def test_unacknowledged_write_leaves_cache_untouched(store: OptionsStore, backend):
    await store.update({"section": "prod"})

    class UnacknowledgedBackend(InMemoryOptionsBackend):
        async def write(self, key, options):
            return False

    store._backend = UnacknowledgedBackend()

    with pytest.raises(ServiceError, match="not saved"):
        await store.update({"section": "staging"})
    assert await store.get_all() == {"section": "prod"}
