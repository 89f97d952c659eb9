from typing import List

from pydantic import BaseModel, Field


class Brand(BaseModel):
    """The subset of a brand record used to steer metadata generation."""

    id: str
    name: str = ""
    language: str = ""
    country: str = ""
    brand_identity: str = ""
    tone_of_voice: str = ""
    guardrails: List[str] = Field(default_factory=list)
