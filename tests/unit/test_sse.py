import asyncio

from linkwatch.infra.sse import ServerSentEvent, SSEDecoder, iter_events


def _decode_all(lines: list[str]) -> list[ServerSentEvent]:
    decoder = SSEDecoder()
    events = []
    for line in lines:
        event = decoder.decode(line)
        if event is not None:
            events.append(event)
    return events


def test_decoder_dispatches_on_blank_line() -> None:
    events = _decode_all(['data: {"status": "initializing"}', ""])
    assert events == [ServerSentEvent(data='{"status": "initializing"}')]


def test_decoder_joins_multiline_data_and_reads_fields() -> None:
    events = _decode_all(["event: status", "id: 7", "retry: 2000", "data: line one", "data:line two", ""])

    assert len(events) == 1
    event = events[0]
    assert event.event == "status"
    assert event.id == "7"
    assert event.retry == 2000
    assert event.data == "line one\nline two"


def test_decoder_skips_comments_and_empty_events() -> None:
    events = _decode_all([": keepalive", "", "", "data: x\r", ""])
    assert [event.data for event in events] == ["x"]


def test_last_event_id_persists_across_events() -> None:
    events = _decode_all(["id: 1", "data: a", "", "data: b", ""])
    assert [event.id for event in events] == ["1", "1"]


def test_iter_events_discards_unterminated_trailing_event() -> None:
    async def _lines():
        for line in ["data: first", "", "data: partial"]:
            yield line

    async def _collect() -> list[ServerSentEvent]:
        return [event async for event in iter_events(_lines())]

    events = asyncio.run(_collect())

    assert [event.data for event in events] == ["first"]
