from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ExistingPageMetadata(BaseModel):
    """Metadata already present in a page's HTML.

    Absent tags are represented by empty strings, never ``None``.
    """

    title: str = ""
    description: str = ""
    og_title: str = ""
    og_description: str = ""


class MetadataResult(BaseModel):
    """Outcome of processing one URL."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    url: str
    page_title: str = ""
    meta_description: str = ""
    og_title: str = ""
    og_description: str = ""
    status: Literal["success", "error"]
    error: Optional[str] = None

    @classmethod
    def failed(cls, url: str, error: str) -> "MetadataResult":
        return cls(url=url, status="error", error=error or "Failed to generate metadata")

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)


class ProgressEvent(BaseModel):
    """One frame of the progress stream."""

    message: str
    progress: int = Field(ge=0, le=100)
    result: Optional[MetadataResult] = None

    def to_payload(self) -> dict:
        payload = {"message": self.message, "progress": self.progress}
        if self.result is not None:
            payload["result"] = self.result.to_wire()
        return payload


class ExportRequest(BaseModel):
    results: List[MetadataResult]
