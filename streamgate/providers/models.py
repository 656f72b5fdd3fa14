from typing import Annotated, Any, Callable, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

TmdbId = Annotated[str, Field(pattern=r"^\d+$")]


class MediaBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str = Field(min_length=1)
    releaseYear: int = Field(gt=0)
    tmdbId: TmdbId


class MovieMedia(MediaBase):
    type: Literal["movie"] = "movie"


class EpisodeRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    number: int
    tmdbId: TmdbId


class SeasonRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    number: int
    tmdbId: TmdbId


class ShowMedia(MediaBase):
    type: Literal["show"] = "show"
    episode: EpisodeRef
    season: SeasonRef


ScrapeMedia = Annotated[Union[MovieMedia, ShowMedia], Field(discriminator="type")]


class EmbedLink(BaseModel):
    embedId: str
    url: str


class SourceOutput(BaseModel):
    embeds: List[EmbedLink] = []
    stream: List[Dict[str, Any]] = []


class EmbedOutput(BaseModel):
    stream: List[Dict[str, Any]] = []


class RunOutput(BaseModel):
    sourceId: str
    embedId: Optional[str] = None
    stream: Dict[str, Any]


class ScrapeEvents(BaseModel):
    """Callback table the engine reports progress through."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    init: Optional[Callable[[dict], None]] = None
    start: Optional[Callable[[str], None]] = None
    update: Optional[Callable[[dict], None]] = None
    discoverEmbeds: Optional[Callable[[dict], None]] = None

    def emit(self, name: str, payload):
        callback = getattr(self, name)
        if callback is not None:
            callback(payload)
