import asyncio

import orjson

from streamgate.providers.base import BaseEmbed, BaseSource
from streamgate.providers.models import EmbedOutput, SourceOutput
from streamgate.services.turnstile import VerificationResult

SECRET = "test-signing-secret-that-is-long-enough-for-hs256"

HLS_STREAM = {
    "id": "primary",
    "type": "hls",
    "playlist": "https://cdn.example/master.m3u8",
}


class FakeVerifier:
    def __init__(self, result: VerificationResult = None, error: Exception = None):
        self.result = result or VerificationResult(success=True)
        self.error = error
        self.calls = []

    async def verify(self, response_token: str, remote_ip: str):
        self.calls.append((response_token, remote_ip))
        if self.error:
            raise self.error
        return self.result


class FakeSource(BaseSource):
    def __init__(
        self,
        id: str,
        rank: int,
        output: SourceOutput = None,
        error: Exception = None,
        delay: float = 0,
        media_types=("movie", "show"),
    ):
        self.id = id
        self.name = id.title()
        self.rank = rank
        self.output = output
        self.error = error
        self.delay = delay
        self.media_types = media_types
        self.seen_media = []

    async def scrape(self, ctx):
        self.seen_media.append(ctx.media)
        ctx.progress(50)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.output or SourceOutput()


class FakeEmbed(BaseEmbed):
    def __init__(self, id: str, rank: int, stream=None, error: Exception = None):
        self.id = id
        self.name = id.title()
        self.rank = rank
        self.stream = stream or []
        self.error = error
        self.seen_urls = []

    async def scrape(self, ctx):
        self.seen_urls.append(ctx.url)
        if self.error:
            raise self.error
        return EmbedOutput(stream=self.stream)


def parse_sse(body: str):
    """Split an SSE body into frames of {id, event, data}."""
    frames = []
    for block in body.split("\n\n"):
        if not block.strip():
            continue

        fields = {}
        for line in block.split("\n"):
            key, _, value = line.partition(":")
            if value.startswith(" "):
                value = value[1:]
            fields[key] = value

        frames.append(
            {"id": int(fields["id"]), "event": fields["event"], "data": fields["data"]}
        )
    return frames


def frame_payload(frame: dict):
    return orjson.loads(frame["data"]) if frame["data"] else None
