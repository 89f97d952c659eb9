import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import Response, StreamingResponse
from pydantic import ValidationError
from slowapi import Limiter
from slowapi.util import get_remote_address

from metagen import config
from metagen.dependencies import get_brand_store, get_pipeline
from metagen.models.request import MetadataRequest
from metagen.models.result import ExportRequest
from metagen.services.brands import BrandStore, BrandStoreError
from metagen.services.exporter import export_filename, results_to_csv
from metagen.services.pipeline import MetadataPipeline
from metagen.services.progress import MEDIA_TYPE, SSE_HEADERS, stream_progress

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)
router = APIRouter(tags=["Metadata"])


@router.post(
    "/generate-metadata",
    summary="Generate SEO metadata for a batch of URLs",
    description=(
        "Accepts `{brandId, urls, isBulk}` and streams progress as Server-Sent "
        "Events.  Every frame is `event: progress` with a JSON payload "
        "`{message, progress, result?}`; one result frame is sent per URL in "
        "input order and the stream ends with a `progress: 100` frame.  A URL "
        "that fails produces a result with `status: \"error\"` and the batch "
        "continues.\n\n"
        "Missing fields are rejected with `400` and an unknown brand with `404` "
        "before the stream is opened."
    ),
    response_class=StreamingResponse,
)
@limiter.limit("5/minute")
async def generate_metadata(
    request: Request,
    brand_store: BrandStore = Depends(get_brand_store),
    pipeline: MetadataPipeline = Depends(get_pipeline),
) -> StreamingResponse:
    body = await _parse_body(request)

    try:
        brand = await brand_store.get_brand(body.brand_id)
    except BrandStoreError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    if brand is None:
        logger.warning("Brand not found: %s", body.brand_id)
        raise HTTPException(status_code=404, detail="Brand not found")

    logger.info(
        "Metadata generation request received",
        extra={"brand_id": body.brand_id, "url_count": len(body.urls), "is_bulk": body.is_bulk},
    )

    events = pipeline.run(body.urls, brand=brand, is_cancelled=request.is_disconnected)
    return StreamingResponse(stream_progress(events), media_type=MEDIA_TYPE, headers=SSE_HEADERS)


@router.post(
    "/generate-metadata/export",
    summary="Download generated metadata as CSV",
    response_class=Response,
)
@limiter.limit("30/minute")
async def export_metadata(request: Request, body: ExportRequest) -> Response:
    """Render the results collected from a stream as a CSV attachment."""
    return Response(
        content=results_to_csv(body.results),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{export_filename()}"'},
    )


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

async def _parse_body(request: Request) -> MetadataRequest:
    """Decode and validate the request body, raising ``400`` on any problem."""
    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Request body must be valid JSON")

    try:
        body = MetadataRequest.model_validate(payload)
    except ValidationError as exc:
        logger.warning("Invalid metadata request: %s", exc)
        raise HTTPException(status_code=400, detail="Invalid request body")

    if not body.brand_id or not body.urls:
        raise HTTPException(status_code=400, detail="Missing required fields")
    if len(body.urls) > config.MAX_URLS_PER_REQUEST:
        raise HTTPException(
            status_code=400,
            detail=f"At most {config.MAX_URLS_PER_REQUEST} URLs can be processed per request",
        )
    return body
