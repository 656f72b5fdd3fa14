import asyncio
import importlib
import inspect
import os
import pkgutil
from typing import Dict, Iterable, Optional

from streamgate.core.exceptions import EngineError, NotFoundError
from streamgate.core.logger import logger
from streamgate.core.models import settings
from streamgate.providers.base import (BaseEmbed, BaseSource, ScrapeContext,
                                       is_valid_stream)
from streamgate.providers.models import (EmbedOutput, RunOutput, ScrapeEvents,
                                         SourceOutput)
from streamgate.services.fetcher import make_fetch_router

PLUGIN_PACKAGES = (
    ("sources", BaseSource),
    ("embeds", BaseEmbed),
)


class ProviderEngine:
    def __init__(
        self,
        fetcher,
        sources: Optional[Iterable[BaseSource]] = None,
        embeds: Optional[Iterable[BaseEmbed]] = None,
        max_concurrency: int = 4,
    ):
        self.fetcher = fetcher
        self.max_concurrency = max(1, max_concurrency)
        self.sources: Dict[str, BaseSource] = {}
        self.embeds: Dict[str, BaseEmbed] = {}

        if sources is None and embeds is None:
            self.discover_providers()
        else:
            self.sources = {source.id: source for source in sources or []}
            self.embeds = {embed.id: embed for embed in embeds or []}

    def discover_providers(self):
        """
        Dynamically discover and load scraper classes from the sources and
        embeds packages.
        """
        registries = {"sources": self.sources, "embeds": self.embeds}
        for package_name, base_class in PLUGIN_PACKAGES:
            package = f"streamgate.providers.{package_name}"
            path = os.path.join(os.path.dirname(__file__), package_name)

            for _, name, _ in pkgutil.iter_modules([path]):
                module = importlib.import_module(f"{package}.{name}")

                for _, obj in inspect.getmembers(module):
                    if (
                        inspect.isclass(obj)
                        and issubclass(obj, base_class)
                        and obj is not base_class
                        and not inspect.isabstract(obj)
                    ):
                        instance = obj()
                        registries[package_name][instance.id] = instance

        logger.log(
            "SCRAPER",
            f"Loaded {len(self.sources)} sources and {len(self.embeds)} embeds",
        )

    def list_sources(self, media_type: str = None):
        sources = [
            source
            for source in self.sources.values()
            if not source.disabled
            and (media_type is None or media_type in source.media_types)
        ]
        return sorted(sources, key=lambda source: source.rank, reverse=True)

    def list_embeds(self):
        embeds = [embed for embed in self.embeds.values() if not embed.disabled]
        return sorted(embeds, key=lambda embed: embed.rank, reverse=True)

    def _context(self, events: ScrapeEvents, scrape_id: str, **kwargs):
        def progress(percentage: int):
            events.emit(
                "update",
                {"id": scrape_id, "percentage": percentage, "status": "pending"},
            )

        return ScrapeContext(fetcher=self.fetcher, progress=progress, **kwargs)

    def _report_failure(self, events: ScrapeEvents, scrape_id: str, error: Exception):
        if isinstance(error, NotFoundError):
            events.emit(
                "update",
                {
                    "id": scrape_id,
                    "percentage": 100,
                    "status": "notfound",
                    "reason": str(error),
                },
            )
            return

        logger.warning(f"Scraper {scrape_id} failed: {error}")
        events.emit(
            "update",
            {"id": scrape_id, "percentage": 100, "status": "failure", "error": error},
        )

    async def _scrape_source(
        self,
        source: BaseSource,
        media,
        events: ScrapeEvents,
        semaphore: asyncio.Semaphore,
    ):
        async with semaphore:
            events.emit("start", source.id)
            try:
                output = await source.scrape(
                    self._context(events, source.id, media=media)
                )
                output = output.model_copy(
                    update={"stream": [s for s in output.stream if is_valid_stream(s)]}
                )
                if not output.stream and not output.embeds:
                    raise NotFoundError("No streams found")
            except Exception as e:
                self._report_failure(events, source.id, e)
                return None
            return output

    async def _run_embeds(
        self, source: BaseSource, output: SourceOutput, events: ScrapeEvents
    ):
        order = [embed.id for embed in self.list_embeds()]
        links = sorted(
            (link for link in output.embeds if link.embedId in order),
            key=lambda link: order.index(link.embedId),
        )
        if not links:
            return None

        events.emit(
            "discoverEmbeds",
            {
                "sourceId": source.id,
                "embeds": [
                    {"id": f"{source.id}-{i}", "embedScraperId": link.embedId}
                    for i, link in enumerate(links)
                ],
            },
        )

        for i, link in enumerate(links):
            scrape_id = f"{source.id}-{i}"
            embed = self.embeds[link.embedId]
            events.emit("start", scrape_id)
            try:
                embed_output = await embed.scrape(
                    self._context(events, scrape_id, url=link.url)
                )
                streams = [s for s in embed_output.stream if is_valid_stream(s)]
                if not streams:
                    raise NotFoundError("No streams found")
            except Exception as e:
                self._report_failure(events, scrape_id, e)
                continue

            return RunOutput(sourceId=source.id, embedId=embed.id, stream=streams[0])

        return None

    async def run_all(self, media, events: ScrapeEvents = None):
        """
        Scrape every enabled source for `media` and return the first playable
        stream in rank order, or None.

        Sources are scraped concurrently, so their events interleave; results
        are still consumed in rank order and the remaining scrapes are
        cancelled once a stream is found.
        """
        events = events or ScrapeEvents()
        sources = self.list_sources(media.type)
        events.emit("init", {"sourceIds": [source.id for source in sources]})

        semaphore = asyncio.Semaphore(self.max_concurrency)
        tasks = [
            asyncio.create_task(self._scrape_source(source, media, events, semaphore))
            for source in sources
        ]
        try:
            for source, task in zip(sources, tasks):
                output = await task
                if output is None:
                    continue

                if output.stream:
                    return RunOutput(sourceId=source.id, stream=output.stream[0])

                result = await self._run_embeds(source, output, events)
                if result is not None:
                    return result

            return None
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    async def run_source_scraper(
        self, source_id: str, media, events: ScrapeEvents = None
    ) -> SourceOutput:
        events = events or ScrapeEvents()
        source = self.sources.get(source_id)
        if source is None or source.disabled:
            raise EngineError(f"Source with ID {source_id} not found")
        if media.type not in source.media_types:
            raise EngineError(f"Source {source_id} does not support {media.type}")

        output = await source.scrape(self._context(events, source_id, media=media))
        output = output.model_copy(
            update={"stream": [s for s in output.stream if is_valid_stream(s)]}
        )
        if not output.stream and not output.embeds:
            raise NotFoundError("No streams found")
        return output

    async def run_embed_scraper(
        self, embed_id: str, url: str, events: ScrapeEvents = None
    ) -> EmbedOutput:
        events = events or ScrapeEvents()
        embed = self.embeds.get(embed_id)
        if embed is None or embed.disabled:
            raise EngineError(f"Embed with ID {embed_id} not found")

        output = await embed.scrape(self._context(events, embed_id, url=url))
        output = output.model_copy(
            update={"stream": [s for s in output.stream if is_valid_stream(s)]}
        )
        if not output.stream:
            raise NotFoundError("No streams found")
        return output


provider_engine = None


def get_provider_engine():
    global provider_engine
    if provider_engine is None:
        provider_engine = ProviderEngine(
            make_fetch_router(), max_concurrency=settings.PROVIDER_CONCURRENCY
        )
    return provider_engine
