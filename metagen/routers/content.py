import logging

from fastapi import APIRouter, HTTPException, Request

from metagen.models.request import ContentRequest
from metagen.routers.metadata import limiter
from metagen.services.fetcher import FetchError, FetchStatusError, FetchTimeoutError, fetch_url
from metagen.services.sanitizer import html_to_text

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Content"])


@router.post("/fetch-url-content", summary="Fetch a page and return its plain text")
@limiter.limit("20/minute")
async def fetch_url_content(request: Request, body: ContentRequest) -> dict:
    url = str(body.url)
    logger.info("Content request received", extra={"url": url})

    try:
        html = await fetch_url(url)
    except ValueError as exc:
        logger.warning("Invalid or blocked URL: %s – %s", url, exc)
        raise HTTPException(status_code=400, detail=str(exc))
    except FetchTimeoutError:
        logger.error("Timeout fetching URL: %s", url)
        raise HTTPException(status_code=504, detail="The target URL timed out.")
    except FetchStatusError as exc:
        logger.error("HTTP error fetching URL %s: %s", url, exc)
        raise HTTPException(
            status_code=502, detail=f"Target URL returned HTTP {exc.status_code}."
        )
    except FetchError as exc:
        logger.error("Error fetching URL %s: %s", url, exc)
        raise HTTPException(status_code=502, detail=str(exc))

    return {"content": html_to_text(html)}
