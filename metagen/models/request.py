from typing import List

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, field_validator
from pydantic.alias_generators import to_camel


class MetadataRequest(BaseModel):
    """Body of ``POST /generate-metadata``.

    Missing fields default to empty values so that the router can reject
    them with a single ``400`` instead of a schema error.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    brand_id: str = ""
    urls: List[str] = Field(default_factory=list)
    is_bulk: bool = False

    @field_validator("brand_id")
    @classmethod
    def _strip_brand_id(cls, value: str) -> str:
        return value.strip()

    @field_validator("urls")
    @classmethod
    def _drop_blank_urls(cls, value: List[str]) -> List[str]:
        # The bulk form submits a textarea split on newlines
        return [url.strip() for url in value if url and url.strip()]


class ContentRequest(BaseModel):
    url: HttpUrl
