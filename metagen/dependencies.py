"""Factories for the collaborators injected into the routers.

Tests swap any of these out through ``app.dependency_overrides``.
"""

import logging
from functools import lru_cache

from fastapi import Depends

from metagen import config
from metagen.services.brands import BrandStore, InMemoryBrandStore, SupabaseBrandStore
from metagen.services.generator import MetadataGenerator, create_openai_client
from metagen.services.pipeline import MetadataPipeline

logger = logging.getLogger(__name__)


@lru_cache
def get_brand_store() -> BrandStore:
    if config.SUPABASE_URL:
        return SupabaseBrandStore(config.SUPABASE_URL, config.SUPABASE_KEY)
    logger.warning("SUPABASE_URL is not set; using an empty in-memory brand store")
    return InMemoryBrandStore()


@lru_cache
def get_generator() -> MetadataGenerator:
    return MetadataGenerator(create_openai_client(), model=config.OPENAI_MODEL)


def get_pipeline(generator: MetadataGenerator = Depends(get_generator)) -> MetadataPipeline:
    """A fresh pipeline per request; nothing is shared between batches."""
    return MetadataPipeline(generator, delay=config.REQUEST_DELAY)
