"""Bulk metadata pipeline.

URLs are processed strictly one at a time with a fixed pause before each
fetch.  A failure on one URL becomes an error result for that URL and the
batch carries on; nothing is retried.
"""

import asyncio
import logging
from typing import AsyncIterator, Awaitable, Callable, List, Optional, Sequence

from metagen import config
from metagen.models.brand import Brand
from metagen.models.result import MetadataResult, ProgressEvent
from metagen.services.fetcher import FetchError, check_url, fetch_url
from metagen.services.generator import GenerationError, MetadataGenerator
from metagen.services.metadata import extract_existing_metadata
from metagen.services.progress import percent
from metagen.services.sanitizer import html_to_text

logger = logging.getLogger(__name__)

FetchPage = Callable[[str], Awaitable[str]]
IsCancelled = Callable[[], Awaitable[bool]]


class MetadataPipeline:
    def __init__(
        self,
        generator: MetadataGenerator,
        fetch_page: FetchPage = fetch_url,
        delay: float = config.REQUEST_DELAY,
    ) -> None:
        self._generator = generator
        self._fetch_page = fetch_page
        self._delay = delay

    async def process_url(self, url: str, brand: Optional[Brand] = None) -> MetadataResult:
        """Fetch, scan and generate metadata for a single *url*.

        Raises:
            ValueError: if *url* is not an absolute http(s) URL.
            FetchError: if the page cannot be fetched.
            GenerationError: if generation fails.
        """
        check_url(url)
        html = await self._fetch_page(url)
        text = html_to_text(html)
        existing = extract_existing_metadata(html)
        return await self._generator.generate(url, text, existing, brand)

    async def run(
        self,
        urls: Sequence[str],
        brand: Optional[Brand] = None,
        is_cancelled: Optional[IsCancelled] = None,
    ) -> AsyncIterator[ProgressEvent]:
        """Yield progress events while processing *urls* in order.

        Yields an opening event, a "processing" and a result event per URL,
        and a final 100% event.  When *is_cancelled* reports true before a
        URL is started the run stops without the final event.
        """
        total = len(urls)
        results: List[MetadataResult] = []

        yield ProgressEvent(message=f"Starting metadata generation for {total} URLs", progress=0)

        for index, url in enumerate(urls):
            if is_cancelled is not None and await is_cancelled():
                logger.info(
                    "Client disconnected, stopping batch",
                    extra={"processed": len(results), "total": total},
                )
                return

            yield ProgressEvent(
                message=f"Processing URL {index + 1} of {total}: {url}",
                progress=percent(index, total),
            )

            if self._delay > 0:
                await asyncio.sleep(self._delay)

            try:
                result = await self.process_url(url, brand)
            except (ValueError, FetchError, GenerationError) as exc:
                logger.warning("Metadata generation failed for %s: %s", url, exc)
                result = MetadataResult.failed(url, str(exc))
                message = f"Error processing {url}"
            else:
                message = f"Processed {url}"

            results.append(result)
            yield ProgressEvent(message=message, progress=percent(index + 1, total), result=result)

        failed = sum(1 for r in results if r.status == "error")
        logger.info(
            "Metadata batch finished",
            extra={"total": total, "succeeded": total - failed, "failed": failed},
        )
        yield ProgressEvent(
            message=f"Metadata generation complete: {total - failed} of {total} URLs succeeded",
            progress=100,
        )
