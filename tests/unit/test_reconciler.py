import asyncio

import pytest

from linkwatch.client.reconciler import Reconciler
from linkwatch.core.events import ConnectionUpdate
from linkwatch.core.snapshot import Account, ConnectionState, StatusSnapshot


def _run(coro):
    return asyncio.run(coro)


def test_zero_count_never_overwrites_positive_count() -> None:
    async def _scenario() -> Reconciler:
        reconciler = Reconciler()
        await reconciler.process({"status": "connected", "messagesProcessed": 40, "user": {"name": "A"}}, "push")
        await reconciler.process({"status": "connected", "messagesProcessed": 0}, "poll")
        return reconciler

    reconciler = _run(_scenario())

    assert reconciler.current.state is ConnectionState.CONNECTED
    assert reconciler.current.message_count == 40
    assert reconciler.carried_forward == 1


def test_missing_count_is_carried_forward_in_transitional_state() -> None:
    async def _scenario() -> StatusSnapshot:
        reconciler = Reconciler()
        await reconciler.process({"status": "loading_chats", "messagesProcessed": 15}, "push")
        await reconciler.process({"status": "loading_chats", "progress": 60}, "poll")
        return reconciler.current

    current = _run(_scenario())

    assert current.message_count == 15
    assert current.progress_percent == 60


def test_lower_stale_count_is_carried_forward() -> None:
    async def _scenario() -> int:
        reconciler = Reconciler()
        await reconciler.process({"status": "connected", "messagesProcessed": 40}, "push")
        await reconciler.process({"status": "connected", "messagesProcessed": 12}, "poll")
        return reconciler.current.message_count

    assert _run(_scenario()) == 40


def test_disconnected_resets_count() -> None:
    async def _scenario() -> int:
        reconciler = Reconciler()
        await reconciler.process({"status": "connected", "messagesProcessed": 40}, "push")
        await reconciler.process({"status": "disconnected"}, "poll")
        return reconciler.current.message_count

    assert _run(_scenario()) == 0


def test_unknown_state_is_dropped_without_publishing() -> None:
    async def _scenario() -> tuple[Reconciler, list[ConnectionUpdate]]:
        reconciler = Reconciler()
        seen: list[ConnectionUpdate] = []
        reconciler.updates.subscribe(seen.append)
        await reconciler.process({"status": "connected", "messagesProcessed": 5}, "push")
        result = await reconciler.process({"status": "teleporting", "messagesProcessed": 0}, "push")
        await reconciler.process("not a payload", "push")
        assert result is None
        return reconciler, seen

    reconciler, seen = _run(_scenario())

    assert len(seen) == 1
    assert reconciler.rejected == 2
    assert reconciler.current.state is ConnectionState.CONNECTED
    assert reconciler.current.message_count == 5


def test_published_snapshots_never_carry_fields_invalid_for_state() -> None:
    async def _scenario() -> list[ConnectionUpdate]:
        reconciler = Reconciler()
        seen: list[ConnectionUpdate] = []
        reconciler.updates.subscribe(seen.append)
        await reconciler.process(
            {"status": "connecting", "qrCode": "late-code", "user": {"name": "A"}, "error": "x"},
            "poll",
        )
        await reconciler.process({"status": "error", "qrCode": "code", "error": "auth failed"}, "push")
        return seen

    seen = _run(_scenario())

    connecting, failed = (update.snapshot for update in seen)
    assert connecting.code_payload is None
    assert connecting.account is None
    assert connecting.error_detail is None
    assert failed.code_payload is None
    assert failed.error_detail == "auth failed"


def test_updates_carry_previous_snapshot_and_source() -> None:
    async def _scenario() -> list[ConnectionUpdate]:
        reconciler = Reconciler()
        seen: list[ConnectionUpdate] = []
        reconciler.updates.subscribe(seen.append)
        await reconciler.process({"status": "initializing"}, "action")
        await reconciler.process({"status": "initializing"}, "poll")
        return seen

    first, second = _run(_scenario())

    assert first.source == "action"
    assert first.previous.state is ConnectionState.DISCONNECTED
    assert first.state_changed is True
    assert second.state_changed is False


@pytest.mark.asyncio
async def test_worker_processes_candidates_in_submission_order() -> None:
    reconciler = Reconciler()
    states: list[str] = []
    reconciler.updates.subscribe(lambda update: states.append(update.snapshot.state.value))
    reconciler.start()
    try:
        reconciler.submit({"status": "initializing"}, "push")
        reconciler.submit({"status": "qr_ready", "qrCode": "a"}, "poll")
        reconciler.submit({"status": "connecting"}, "push")
        reconciler.submit({"status": "connected", "user": {"name": "A", "phone": "1"}}, "poll")
        await reconciler.drain()
    finally:
        await reconciler.stop()

    assert states == ["initializing", "qr_ready", "connecting", "connected"]
    assert reconciler.current.account == Account("A", "1")
    assert reconciler.accepted == 4
    assert reconciler.is_running is False


@pytest.mark.asyncio
async def test_slow_subscriber_does_not_interleave_candidates() -> None:
    reconciler = Reconciler()
    log: list[tuple[str, int]] = []

    async def _slow(update: ConnectionUpdate) -> None:
        log.append(("start", update.snapshot.message_count))
        await asyncio.sleep(0.01)
        log.append(("end", update.snapshot.message_count))

    reconciler.updates.subscribe(_slow)
    reconciler.start()
    try:
        reconciler.submit({"status": "connected", "messagesProcessed": 1}, "push")
        reconciler.submit({"status": "connected", "messagesProcessed": 2}, "poll")
        await reconciler.drain()
    finally:
        await reconciler.stop()

    assert log == [("start", 1), ("end", 1), ("start", 2), ("end", 2)]


@pytest.mark.asyncio
async def test_failing_subscriber_does_not_block_others() -> None:
    reconciler = Reconciler()
    seen: list[str] = []

    def _broken(update: ConnectionUpdate) -> None:
        raise RuntimeError("boom")

    reconciler.updates.subscribe(_broken)
    reconciler.updates.subscribe(lambda update: seen.append(update.snapshot.state.value))

    await reconciler.process({"status": "connecting"}, "push")

    assert seen == ["connecting"]


def test_published_count_only_drops_on_disconnected() -> None:
    sequence = [
        {"status": "loading_chats", "messagesProcessed": 5},
        {"status": "loading_chats", "messagesProcessed": 0},
        {"status": "connected", "messagesProcessed": 9},
        {"status": "connected", "messagesProcessed": 3},
        {"status": "connected"},
        {"status": "disconnected", "messagesProcessed": 9},
        {"status": "initializing", "messagesProcessed": 0},
        {"status": "connected", "messagesProcessed": 2},
    ]

    async def _scenario() -> list[ConnectionUpdate]:
        reconciler = Reconciler()
        seen: list[ConnectionUpdate] = []
        reconciler.updates.subscribe(seen.append)
        for raw in sequence:
            await reconciler.process(raw, "poll")
        return seen

    counts = [(update.snapshot.state, update.snapshot.message_count) for update in _run(_scenario())]

    assert counts == [
        (ConnectionState.LOADING_CHATS, 5),
        (ConnectionState.LOADING_CHATS, 5),
        (ConnectionState.CONNECTED, 9),
        (ConnectionState.CONNECTED, 9),
        (ConnectionState.CONNECTED, 9),
        (ConnectionState.DISCONNECTED, 0),
        (ConnectionState.INITIALIZING, 0),
        (ConnectionState.CONNECTED, 2),
    ]


def test_account_survives_connected_to_error() -> None:
    async def _scenario() -> list[StatusSnapshot]:
        reconciler = Reconciler()
        seen: list[StatusSnapshot] = []
        reconciler.updates.subscribe(lambda update: seen.append(update.snapshot))
        await reconciler.process({"status": "connected", "user": {"name": "Ana", "phone": "+1"}}, "push")
        await reconciler.process({"status": "error", "user": {"name": "Ana", "phone": "+1"}, "error": "boom"}, "poll")
        await reconciler.process({"status": "error", "error": "still failing"}, "push")
        await reconciler.process({"status": "disconnected"}, "poll")
        return seen

    connected, failed, still_failed, disconnected = _run(_scenario())

    assert connected.account == Account("Ana", "+1")
    assert failed.account == Account("Ana", "+1")
    assert failed.error_detail == "boom"
    assert still_failed.account == Account("Ana", "+1")
    assert disconnected.account is None


def test_error_before_linking_has_no_account() -> None:
    async def _scenario() -> StatusSnapshot:
        reconciler = Reconciler()
        await reconciler.process({"status": "qr_ready", "qrCode": "A"}, "push")
        await reconciler.process({"status": "error", "error": "qr expired"}, "poll")
        return reconciler.current

    assert _run(_scenario()).account is None
