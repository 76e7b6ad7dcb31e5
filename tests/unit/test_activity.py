import pytest

from linkwatch.client.activity import ActivityEntry, ActivityFeed, parse_entry


class _FakeLogs:
    def __init__(self, entries: list[dict]) -> None:
        self.entries = entries
        self.cleared = False

    async def fetch_logs(self) -> list[dict]:
        return list(self.entries)

    async def clear_logs(self) -> None:
        self.cleared = True
        self.entries = []


def test_parse_entry_normalizes_fields() -> None:
    entry = parse_entry({"id": 3, "timestamp": "t", "type": "success", "icon": "✅", "title": "Connected"})
    assert entry == ActivityEntry(id="3", timestamp="t", type="success", title="Connected", icon="✅")

    fallback = parse_entry({"id": "x", "type": "mystery", "title": "Hi", "details": 12})
    assert fallback.type == "info"
    assert fallback.details is None


def test_parse_entry_skips_incomplete_entries() -> None:
    assert parse_entry({"title": "no id"}) is None
    assert parse_entry({"id": 1}) is None


@pytest.mark.asyncio
async def test_refresh_publishes_bounded_entries() -> None:
    source = _FakeLogs([{"id": i, "title": f"entry {i}"} for i in range(5)] + [{"bogus": True}])
    feed = ActivityFeed(source, limit=3)
    published: list[tuple[ActivityEntry, ...]] = []
    feed.updates.subscribe(published.append)

    entries = await feed.refresh()

    assert [entry.id for entry in entries] == ["0", "1", "2"]
    assert feed.entries == entries
    assert published == [entries]


@pytest.mark.asyncio
async def test_clear_empties_backend_and_feed() -> None:
    source = _FakeLogs([{"id": 1, "title": "entry"}])
    feed = ActivityFeed(source)
    await feed.refresh()

    await feed.clear()

    assert source.cleared is True
    assert feed.entries == ()


def test_entry_to_dict_round_trips_fields() -> None:
    entry = ActivityEntry(id="1", timestamp="t", type="error", title="Failed", icon="!", details="boom")
    assert entry.to_dict() == {
        "id": "1",
        "timestamp": "t",
        "type": "error",
        "icon": "!",
        "title": "Failed",
        "details": "boom",
    }
