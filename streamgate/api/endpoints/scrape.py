from fastapi import APIRouter, Depends, Request

from streamgate.api.relay import EventRelay
from streamgate.api.schemas import (parse_embed_query, parse_scrape_query,
                                    parse_source_query)
from streamgate.providers.manager import ProviderEngine, get_provider_engine
from streamgate.services.auth import AuthResult, require_auth

router = APIRouter()


@router.get(
    "/scrape",
    tags=["Scrape"],
    summary="Scrape All Sources",
    description="Runs every source for a movie or show and streams progress as SSE.",
)
async def scrape(
    request: Request,
    auth: AuthResult = Depends(require_auth),
    engine: ProviderEngine = Depends(get_provider_engine),
):
    media = parse_scrape_query(request.query_params)

    relay = EventRelay("scrape", new_token=auth.new_token)
    return relay.response(lambda events: engine.run_all(media, events))


@router.get(
    "/scrape/embed",
    tags=["Scrape"],
    summary="Scrape Embed",
    description="Resolves a single embed URL previously discovered by a source.",
)
async def scrape_embed(
    request: Request,
    auth: AuthResult = Depends(require_auth),
    engine: ProviderEngine = Depends(get_provider_engine),
):
    query = parse_embed_query(request.query_params)

    relay = EventRelay("embed", new_token=auth.new_token)
    return relay.response(
        lambda events: engine.run_embed_scraper(query.id, query.url, events)
    )


@router.get(
    "/scrape/source",
    tags=["Scrape"],
    summary="Scrape Source",
    description="Runs one specific source for a movie or show.",
)
async def scrape_source(
    request: Request,
    auth: AuthResult = Depends(require_auth),
    engine: ProviderEngine = Depends(get_provider_engine),
):
    source_id, media = parse_source_query(request.query_params)

    relay = EventRelay("source", new_token=auth.new_token)
    return relay.response(
        lambda events: engine.run_source_scraper(source_id, media, events)
    )
