"""Read-only brand lookups.

The brand table lives in a hosted Postgres behind a PostgREST API
(Supabase).  :class:`InMemoryBrandStore` stands in for it in tests and
local runs without a database.
"""

import logging
from typing import Dict, Iterable, Optional, Protocol

import httpx

from metagen.models.brand import Brand

logger = logging.getLogger(__name__)

LOOKUP_TIMEOUT = 10  # seconds
_SELECT = "id,name,language,country,settings"


class BrandStoreError(Exception):
    """The brand store could not be queried."""


class BrandStore(Protocol):
    async def get_brand(self, brand_id: str) -> Optional[Brand]:
        """Return the brand with *brand_id*, or ``None`` when it does not exist."""
        ...


class InMemoryBrandStore:
    def __init__(self, brands: Iterable[Brand] = ()) -> None:
        self._brands: Dict[str, Brand] = {brand.id: brand for brand in brands}

    def add(self, brand: Brand) -> None:
        self._brands[brand.id] = brand

    async def get_brand(self, brand_id: str) -> Optional[Brand]:
        return self._brands.get(brand_id)


def _row_to_brand(row: dict) -> Brand:
    """Flatten a ``brands`` row; identity and tone live in the ``settings`` JSON."""
    settings = row.get("settings") or {}
    if not isinstance(settings, dict):
        settings = {}
    guardrails = settings.get("guardrails") or []
    if isinstance(guardrails, str):
        guardrails = [line.strip() for line in guardrails.splitlines() if line.strip()]

    return Brand(
        id=str(row["id"]),
        name=row.get("name") or "",
        language=row.get("language") or "",
        country=row.get("country") or "",
        brand_identity=settings.get("brandIdentity") or "",
        tone_of_voice=settings.get("toneOfVoice") or "",
        guardrails=[str(rule) for rule in guardrails],
    )


class SupabaseBrandStore:
    """Looks brands up through the Supabase REST endpoint."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._endpoint = f"{base_url.rstrip('/')}/rest/v1/brands"
        self._headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Accept": "application/json",
        }
        self._client = client

    async def get_brand(self, brand_id: str) -> Optional[Brand]:
        params = {"id": f"eq.{brand_id}", "select": _SELECT, "limit": "1"}
        try:
            if self._client is not None:
                response = await self._client.get(
                    self._endpoint, params=params, headers=self._headers, timeout=LOOKUP_TIMEOUT
                )
            else:
                async with httpx.AsyncClient(timeout=LOOKUP_TIMEOUT) as client:
                    response = await client.get(self._endpoint, params=params, headers=self._headers)
        except httpx.HTTPError as exc:
            logger.error("Brand lookup failed for %s: %s", brand_id, exc)
            raise BrandStoreError(f"Brand lookup failed: {exc}") from exc

        # PostgREST answers 400 for ids that do not fit the column type
        if response.status_code == 400:
            return None
        if not response.is_success:
            logger.error("Brand lookup for %s returned HTTP %s", brand_id, response.status_code)
            raise BrandStoreError(f"Brand lookup returned HTTP {response.status_code}")

        try:
            rows = response.json()
        except ValueError as exc:
            logger.error("Brand lookup for %s returned a non-JSON body", brand_id)
            raise BrandStoreError("Brand lookup returned an invalid response") from exc
        if not rows:
            return None
        return _row_to_brand(rows[0])
