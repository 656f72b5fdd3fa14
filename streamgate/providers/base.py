from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from streamgate.providers.models import EmbedOutput, SourceOutput


@dataclass
class ScrapeContext:
    fetcher: Callable
    progress: Callable[[int], None]
    media: Optional[object] = None
    url: Optional[str] = None


class BaseSource(ABC):
    id: str = ""
    name: str = ""
    rank: int = 0
    disabled: bool = False
    media_types: Tuple[str, ...] = ("movie", "show")

    @abstractmethod
    async def scrape(self, ctx: ScrapeContext) -> SourceOutput:
        pass


class BaseEmbed(ABC):
    id: str = ""
    name: str = ""
    rank: int = 0
    disabled: bool = False

    @abstractmethod
    async def scrape(self, ctx: ScrapeContext) -> EmbedOutput:
        pass


def is_valid_stream(stream: dict):
    if not isinstance(stream, dict):
        return False
    if stream.get("type") == "hls":
        return bool(stream.get("playlist"))
    if stream.get("type") == "file":
        return any(
            isinstance(quality, dict) and quality.get("url")
            for quality in (stream.get("qualities") or {}).values()
        )
    return False
