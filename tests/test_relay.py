import asyncio
import random

import pytest
from helpers import frame_payload, parse_sse

from streamgate.api.relay import EventRelay, SSEFrame, flatten_error
from streamgate.providers.models import RunOutput, SourceOutput


async def _collect(relay: EventRelay, invoke):
    chunks = []
    async for chunk in relay.stream(invoke):
        chunks.append(chunk)
    return parse_sse("".join(chunks))


def _run(relay, invoke):
    return asyncio.run(_collect(relay, invoke))


def test_frame_wire_shape():
    frame = SSEFrame(id=4, event="update", data='{"id":"flixhq"}')
    assert frame.encode() == 'id: 4\nevent: update\ndata: {"id":"flixhq"}\n\n'


def test_completed_stream():
    async def invoke(events):
        events.init({"sourceIds": ["flixhq"]})
        events.start("flixhq")
        events.update({"id": "flixhq", "percentage": 50, "status": "pending"})
        return RunOutput(sourceId="flixhq", stream={"type": "hls", "playlist": "p"})

    frames = _run(EventRelay("scrape"), invoke)

    assert [f["event"] for f in frames] == ["init", "start", "update", "completed"]
    assert [f["id"] for f in frames] == [0, 1, 2, 3]
    assert frame_payload(frames[1]) == "flixhq"
    assert frame_payload(frames[-1]) == {
        "sourceId": "flixhq",
        "stream": {"type": "hls", "playlist": "p"},
    }


def test_empty_result_ends_with_no_output():
    async def invoke(events):
        events.init({"sourceIds": []})
        return None

    frames = _run(EventRelay("scrape"), invoke)

    assert [f["event"] for f in frames] == ["init", "noOutput"]
    assert frames[-1]["data"] == ""


def test_failure_ends_with_flattened_error():
    async def invoke(events):
        events.start("flixhq")
        raise RuntimeError("provider exploded")

    frames = _run(EventRelay("embed"), invoke)

    assert [f["event"] for f in frames] == ["start", "error"]
    error = frame_payload(frames[-1])
    assert error["name"] == "RuntimeError"
    assert error["message"] == "provider exploded"
    assert "provider exploded" in error["stack"]


def test_errors_inside_callback_payloads_are_flattened():
    async def invoke(events):
        events.update(
            {"id": "zoechip", "percentage": 100, "status": "failure", "error": KeyError("x")}
        )
        return None

    frames = _run(EventRelay("scrape"), invoke)

    update = frame_payload(frames[0])
    assert update["error"]["name"] == "KeyError"
    assert set(update["error"]) == {"name", "message", "stack"}


def test_renewed_token_is_the_first_frame():
    async def invoke(events):
        return {"stream": [{"type": "hls"}]}

    frames = _run(EventRelay("source", new_token="abc.def.ghi"), invoke)

    assert [f["event"] for f in frames] == ["token", "completed"]
    assert frames[0]["id"] == 0
    assert frame_payload(frames[0]) == "abc.def.ghi"


def test_concurrent_callbacks_keep_ids_strictly_increasing():
    async def invoke(events):
        async def scraper(n):
            for step in range(5):
                await asyncio.sleep(random.random() / 1000)
                events.update({"id": f"s{n}", "percentage": step * 25, "status": "pending"})

        await asyncio.gather(*(scraper(n) for n in range(20)))
        return {"sourceId": "s0"}

    frames = _run(EventRelay("scrape"), invoke)

    assert len(frames) == 101
    assert [f["id"] for f in frames] == list(range(101))
    assert [f["event"] for f in frames].count("completed") == 1
    assert frames[-1]["event"] == "completed"


def test_each_stream_counts_from_zero():
    async def invoke(events):
        events.start("flixhq")
        return None

    async def both():
        return await asyncio.gather(
            _collect(EventRelay("scrape"), invoke),
            _collect(EventRelay("scrape"), invoke),
        )

    first, second = asyncio.run(both())

    assert [f["id"] for f in first] == [0, 1]
    assert [f["id"] for f in second] == [0, 1]


def test_nothing_is_emitted_after_the_terminal_frame():
    relay = EventRelay("scrape")

    async def invoke(events):
        async def late():
            await asyncio.sleep(0.01)
            events.update({"id": "late", "percentage": 100, "status": "success"})

        asyncio.get_running_loop().create_task(late())
        return {"sourceId": "flixhq"}

    async def scenario():
        frames = await _collect(relay, invoke)
        await asyncio.sleep(0.05)
        return frames

    frames = asyncio.run(scenario())

    assert frames[-1]["event"] == "completed"
    assert relay.state == "closed"
    assert relay.queue.empty()


def test_disconnect_cancels_engine_invocation():
    relay = EventRelay("scrape")
    cancelled = []

    async def invoke(events):
        events.init({"sourceIds": ["flixhq"]})
        try:
            await asyncio.sleep(60)
        except asyncio.CancelledError:
            cancelled.append(True)
            raise

    async def scenario():
        stream = relay.stream(invoke)
        first = await stream.__anext__()
        await stream.aclose()
        return first

    first = asyncio.run(scenario())

    assert first.startswith("id: 0\nevent: init\n")
    assert cancelled == [True]
    assert relay.state == "closed"


def test_flatten_error_shape():
    try:
        raise ValueError("bad")
    except ValueError as e:
        flat = flatten_error(e)

    assert flat["name"] == "ValueError"
    assert flat["message"] == "bad"
    assert "Traceback" in flat["stack"]


class EngineAbort(BaseException):
    pass


class Opaque:
    def __str__(self):
        return "opaque"


class Unprintable:
    def __str__(self):
        raise RuntimeError("no text form")


def _run_bounded(relay, invoke):
    async def scenario():
        return await asyncio.wait_for(_collect(relay, invoke), timeout=2)

    return asyncio.run(scenario())


def test_cancelled_invocation_still_ends_with_error():
    async def invoke(events):
        events.init({"sourceIds": ["flixhq"]})
        raise asyncio.CancelledError()

    relay = EventRelay("scrape")
    frames = _run_bounded(relay, invoke)

    assert [f["event"] for f in frames] == ["init", "error"]
    error = frame_payload(frames[-1])
    assert error["name"] == "EngineError"
    assert "cancelled" in error["message"]
    assert relay.state == "closed"


def test_base_exception_from_engine_ends_with_error():
    async def invoke(events):
        raise EngineAbort("provider pool shut down")

    frames = _run_bounded(EventRelay("source"), invoke)

    assert [f["event"] for f in frames] == ["error"]
    error = frame_payload(frames[0])
    assert error["name"] == "EngineAbort"
    assert error["message"] == "provider pool shut down"


def test_unknown_values_in_result_are_stringified():
    async def invoke(events):
        return SourceOutput(stream=[{"type": "hls", "playlist": "p", "extra": Opaque()}])

    frames = _run_bounded(EventRelay("source"), invoke)

    assert frames[-1]["event"] == "completed"
    assert frame_payload(frames[-1])["stream"][0]["extra"] == "opaque"


def test_non_string_keys_are_encoded():
    async def invoke(events):
        events.update({"id": "x", "qualities": {1080: "u"}})
        return None

    frames = _run_bounded(EventRelay("scrape"), invoke)

    assert [f["event"] for f in frames] == ["update", "noOutput"]
    assert frame_payload(frames[0])["qualities"] == {"1080": "u"}


def test_unencodable_payload_becomes_the_terminal_error():
    async def invoke(events):
        events.start("flixhq")
        events.update({"id": "flixhq", "detail": Unprintable()})
        await asyncio.sleep(60)

    relay = EventRelay("scrape")
    frames = _run_bounded(relay, invoke)

    assert [f["event"] for f in frames] == ["start", "error"]
    assert [f["id"] for f in frames] == [0, 1]
    assert relay.state == "closed"


def test_failed_write_closes_stream_and_cancels_engine():
    relay = EventRelay("scrape")
    cancelled = []
    sent = []

    async def invoke(events):
        events.init({"sourceIds": ["flixhq"]})
        try:
            await asyncio.sleep(60)
        except asyncio.CancelledError:
            cancelled.append(True)
            raise

    async def send(message):
        if message["type"] == "http.response.body" and message.get("body"):
            raise OSError("connection reset by peer")
        sent.append(message["type"])

    async def scenario():
        response = relay.response(invoke)
        with pytest.raises(OSError):
            await asyncio.wait_for(response.stream_response(send), timeout=2)

    asyncio.run(scenario())

    assert sent == ["http.response.start"]
    assert cancelled == [True]
    assert relay.state == "closed"
