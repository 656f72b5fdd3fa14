from fastapi import APIRouter, Depends

from streamgate.providers.manager import ProviderEngine, get_provider_engine

router = APIRouter()


@router.get(
    "/metadata",
    tags=["Scrape"],
    summary="Provider Metadata",
    description="Lists the embed and source ids known to the engine, highest rank first.",
)
async def metadata(engine: ProviderEngine = Depends(get_provider_engine)):
    return {
        "embeds": [embed.id for embed in engine.list_embeds()],
        "sources": [source.id for source in engine.list_sources()],
    }
