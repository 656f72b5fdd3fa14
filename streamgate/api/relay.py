import asyncio
import traceback
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import orjson
from pydantic import BaseModel
from starlette.responses import StreamingResponse

from streamgate.core.exceptions import EngineError
from streamgate.core.logger import logger
from streamgate.core.metrics import record_stream_outcome
from streamgate.providers.models import ScrapeEvents
from streamgate.utils.network import NO_CACHE_HEADERS

TERMINAL_EVENTS = ("completed", "noOutput", "error")
CALLBACK_EVENTS = ("init", "start", "update", "discoverEmbeds")

SSE_HEADERS = {**NO_CACHE_HEADERS, "X-Accel-Buffering": "no"}


@dataclass(frozen=True)
class SSEFrame:
    id: int
    event: str
    data: str

    def encode(self):
        return f"id: {self.id}\nevent: {self.event}\ndata: {self.data}\n\n"


def flatten_error(error: BaseException):
    return {
        "name": type(error).__name__,
        "message": str(error),
        "stack": "".join(
            traceback.format_exception(type(error), error, error.__traceback__)
        ),
    }


def to_wire(value: Any):
    if isinstance(value, BaseException):
        return flatten_error(value)
    if isinstance(value, BaseModel):
        # python mode leaves unknown values for orjson's default=str
        return to_wire(value.model_dump(exclude_none=True))
    if isinstance(value, dict):
        return {key: to_wire(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_wire(item) for item in value]
    return value


class RelayStreamingResponse(StreamingResponse):
    async def stream_response(self, send):
        try:
            await super().stream_response(send)
        finally:
            # a failed write leaves the generator suspended, close it so the
            # engine task is released
            await self.body_iterator.aclose()


class EventRelay:
    """
    Streams one engine invocation to one client as SSE frames.

    Engine callbacks only enqueue tagged events, the stream generator is the
    single writer, so frame ids are strictly increasing from 0 and frames are
    never interleaved no matter how many scrapers report at once. Exactly one
    terminal frame (completed, noOutput or error) ends every stream.
    """

    def __init__(self, route: str, new_token: str = None):
        self.route = route
        self.new_token = new_token
        self.state = "open"
        self.queue: asyncio.Queue = asyncio.Queue()
        self._next_id = 0
        self._terminal_queued = False

    def next_frame(self, event: str, payload: Any = None):
        data = "" if payload is None else orjson.dumps(
            to_wire(payload), default=str, option=orjson.OPT_NON_STR_KEYS
        ).decode("utf-8")
        frame = SSEFrame(id=self._next_id, event=event, data=data)
        self._next_id += 1
        return frame

    def push(self, event: str, payload: Any = None):
        if self.state == "closed" or self._terminal_queued:
            return
        if event in TERMINAL_EVENTS:
            self._terminal_queued = True
        self.queue.put_nowait((event, payload))

    def events(self):
        def forward(event: str):
            return lambda payload: self.push(event, payload)

        return ScrapeEvents(**{event: forward(event) for event in CALLBACK_EVENTS})

    async def _invoke(self, invoke: Callable[[ScrapeEvents], Awaitable]):
        try:
            output = await invoke(self.events())
        except Exception as e:
            logger.log("STREAM", f"{self.route} failed: {type(e).__name__}: {e}")
            self.push("error", e)
            return

        if output:
            self.push("completed", output)
        else:
            self.push("noOutput")

    def _on_invoke_done(self, task: asyncio.Task):
        # cancellation or a BaseException escaping the engine never reaches
        # _invoke's handler, so the stream still needs its terminal frame
        if self._terminal_queued or self.state == "closed":
            return

        if task.cancelled():
            error = EngineError("Engine invocation was cancelled")
        else:
            error = task.exception() or EngineError(
                "Engine invocation ended without a result"
            )
        logger.log("STREAM", f"{self.route} aborted: {type(error).__name__}: {error}")
        self.push("error", error)

    def _encode(self, event: str, payload: Any):
        try:
            return event, self.next_frame(event, payload)
        except Exception as e:
            logger.log("STREAM", f"{self.route} could not encode {event}: {e}")
            return "error", self.next_frame("error", e)

    async def stream(self, invoke: Callable[[ScrapeEvents], Awaitable]):
        outcome = "disconnected"
        task = None
        try:
            if self.new_token:
                yield self.next_frame("token", self.new_token).encode()

            self.state = "streaming"
            task = asyncio.create_task(self._invoke(invoke))
            task.add_done_callback(self._on_invoke_done)
            while True:
                event, payload = await self.queue.get()
                event, frame = self._encode(event, payload)
                yield frame.encode()
                if event in TERMINAL_EVENTS:
                    outcome = event
                    break
        finally:
            self.state = "closed"
            if task is not None and not task.done():
                task.cancel()

            record_stream_outcome(self.route, outcome)
            logger.log(
                "STREAM",
                f"{self.route} stream closed after {self._next_id} frames ({outcome})",
            )

            if task is not None:
                await asyncio.gather(task, return_exceptions=True)

    def response(self, invoke: Callable[[ScrapeEvents], Awaitable]):
        return RelayStreamingResponse(
            self.stream(invoke),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )
