from typing import Literal, Mapping

from pydantic import BaseModel, Field, ValidationError

from streamgate.providers.models import (EpisodeRef, MovieMedia, SeasonRef,
                                         ShowMedia, TmdbId)


class MediaTypeQuery(BaseModel):
    type: Literal["movie", "show"]


class MovieQuery(BaseModel):
    type: Literal["movie"]
    title: str = Field(min_length=1)
    releaseYear: int = Field(gt=0)
    tmdbId: TmdbId

    def to_media(self):
        return MovieMedia(
            title=self.title, releaseYear=self.releaseYear, tmdbId=self.tmdbId
        )


class ShowQuery(BaseModel):
    type: Literal["show"]
    title: str = Field(min_length=1)
    releaseYear: int = Field(gt=0)
    tmdbId: TmdbId
    episodeNumber: int
    episodeTmdbId: TmdbId
    seasonNumber: int
    seasonTmdbId: TmdbId

    def to_media(self):
        return ShowMedia(
            title=self.title,
            releaseYear=self.releaseYear,
            tmdbId=self.tmdbId,
            episode=EpisodeRef(number=self.episodeNumber, tmdbId=self.episodeTmdbId),
            season=SeasonRef(number=self.seasonNumber, tmdbId=self.seasonTmdbId),
        )


class SourceMovieQuery(MovieQuery):
    id: str = Field(min_length=1)


class SourceShowQuery(ShowQuery):
    id: str = Field(min_length=1)


class EmbedQuery(BaseModel):
    id: str = Field(min_length=1)
    url: str = Field(min_length=1)


SCRAPE_QUERIES = {"movie": MovieQuery, "show": ShowQuery}
SOURCE_QUERIES = {"movie": SourceMovieQuery, "show": SourceShowQuery}


def _validate_media_query(params: Mapping[str, str], models: dict):
    params = dict(params)
    media_type = MediaTypeQuery.model_validate(params).type
    return models[media_type].model_validate(params)


def parse_scrape_query(params: Mapping[str, str]):
    return _validate_media_query(params, SCRAPE_QUERIES).to_media()


def parse_source_query(params: Mapping[str, str]):
    query = _validate_media_query(params, SOURCE_QUERIES)
    return query.id, query.to_media()


def parse_embed_query(params: Mapping[str, str]):
    return EmbedQuery.model_validate(dict(params))


def format_validation_error(error: ValidationError):
    """One entry per offending field, first error wins."""
    errors = {}
    for detail in error.errors(include_url=False):
        field = ".".join(str(part) for part in detail["loc"]) or "__root__"
        if field not in errors:
            errors[field] = {
                "field": field,
                "message": detail["msg"],
                "type": detail["type"],
            }
    return {"errors": list(errors.values())}
