"""SEO metadata generation through a chat-completions model.

:class:`MetadataGenerator` sends the page text, the page's existing metadata
and the brand context to the model, decodes the JSON answer into
:class:`GeneratedMetadata`, and :func:`resolve_metadata` fills any field the
model left out from the existing metadata.
"""

import json
import logging
from typing import Optional
from urllib.parse import unquote, urlparse

import openai
from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from metagen import config
from metagen.models.brand import Brand
from metagen.models.result import ExistingPageMetadata, MetadataResult

logger = logging.getLogger(__name__)

UNTITLED_PAGE = "Untitled Page"
NO_DESCRIPTION = "No description available"

SYSTEM_PROMPT = """You are an SEO specialist writing page metadata for a brand.

Return a JSON object with exactly these string fields:
  "title"          – SEO page title, at most 60 characters
  "description"    – meta description, at most 160 characters
  "ogTitle"        – Open Graph title, at most 60 characters
  "ogDescription"  – Open Graph description, at most 200 characters

Write in the brand's language. Describe what the page is actually about,
keep the brand's tone of voice and respect its guardrails. Improve on the
existing metadata where it is weak, keep it where it is already good.
Return only the JSON object."""


class GenerationError(Exception):
    """The generation service could not produce usable metadata."""


class EmptyGenerationError(GenerationError):
    def __init__(self) -> None:
        super().__init__("Generation service returned no content")


class GenerationParseError(GenerationError):
    def __init__(self, raw: str) -> None:
        super().__init__("Failed to parse generation response as JSON")
        self.raw = raw


class InvalidGenerationResponse(GenerationError):
    def __init__(self, detail: str, raw: str) -> None:
        super().__init__(f"Invalid generation response: {detail}")
        self.raw = raw


class GeneratedMetadata(BaseModel):
    """Fields returned by the model.  Any of them may be missing."""

    model_config = ConfigDict(extra="ignore", alias_generator=to_camel, populate_by_name=True)

    title: Optional[str] = None
    description: Optional[str] = None
    og_title: Optional[str] = None
    og_description: Optional[str] = None


def _first(*candidates: Optional[str]) -> str:
    """Return the first candidate that is a non-blank string, stripped."""
    for candidate in candidates:
        if candidate and candidate.strip():
            return candidate.strip()
    return ""


def title_from_url(url: str) -> str:
    """Turn the last path segment of *url* into a readable title.

    ``https://shop.example/summer-sale.html`` gives ``"summer sale"``;
    a bare domain gives ``""``.
    """
    segments = [s for s in urlparse(url).path.split("/") if s]
    if not segments:
        return ""
    segment = unquote(segments[-1]).rsplit(".", 1)[0]
    return " ".join(segment.replace("-", " ").replace("_", " ").split())


def resolve_metadata(
    url: str,
    generated: GeneratedMetadata,
    existing: ExistingPageMetadata,
) -> MetadataResult:
    """Build a success result, falling back field by field.

    title:          generated → existing → URL path segment → placeholder
    description:    generated → existing → placeholder
    og title:       generated → existing og → resolved title
    og description: generated → existing og → resolved description
    """
    page_title = _first(generated.title, existing.title, title_from_url(url)) or UNTITLED_PAGE
    meta_description = _first(generated.description, existing.description) or NO_DESCRIPTION

    return MetadataResult(
        url=url,
        page_title=page_title,
        meta_description=meta_description,
        og_title=_first(generated.og_title, existing.og_title, page_title),
        og_description=_first(generated.og_description, existing.og_description, meta_description),
        status="success",
        error=None,
    )


def build_user_prompt(
    url: str,
    text: str,
    existing: ExistingPageMetadata,
    brand: Optional[Brand] = None,
) -> str:
    lines = []
    if brand is not None:
        lines.append(f"Brand: {brand.name or brand.id}")
        if brand.language:
            lines.append(f"Language: {brand.language}")
        if brand.country:
            lines.append(f"Country: {brand.country}")
        if brand.brand_identity:
            lines.append(f"Brand identity: {brand.brand_identity}")
        if brand.tone_of_voice:
            lines.append(f"Tone of voice: {brand.tone_of_voice}")
        if brand.guardrails:
            lines.append("Guardrails:")
            lines.extend(f"- {rule}" for rule in brand.guardrails)
        lines.append("")

    lines.extend(
        [
            f"URL: {url}",
            "",
            "Existing metadata:",
            f"  Title: {existing.title}",
            f"  Description: {existing.description}",
            f"  OG Title: {existing.og_title}",
            f"  OG Description: {existing.og_description}",
            "",
            "--- PAGE CONTENT ---",
            text[: config.MAX_TEXT_CHARS],
            "--- END CONTENT ---",
        ]
    )
    return "\n".join(lines)


def parse_generation(raw: Optional[str]) -> GeneratedMetadata:
    """Decode the model's answer.

    Raises:
        EmptyGenerationError: when *raw* is empty.
        GenerationParseError: when *raw* is not JSON.
        InvalidGenerationResponse: when the JSON is not an object of strings.
    """
    if not raw or not raw.strip():
        raise EmptyGenerationError()

    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Unparseable generation response", extra={"raw": raw[:500]})
        raise GenerationParseError(raw)

    if not isinstance(data, dict):
        raise InvalidGenerationResponse(f"expected a JSON object, got {type(data).__name__}", raw)

    try:
        return GeneratedMetadata.model_validate(data)
    except ValidationError as exc:
        fields = ", ".join(str(err["loc"][0]) for err in exc.errors() if err["loc"])
        raise InvalidGenerationResponse(f"non-string value for {fields}", raw)


class MetadataGenerator:
    """Produces SEO metadata for one page with a single chat completion."""

    def __init__(
        self,
        client: openai.AsyncOpenAI,
        model: str = config.OPENAI_MODEL,
        temperature: float = 0.3,
    ) -> None:
        self._client = client
        self._model = model
        self._temperature = temperature

    async def generate(
        self,
        url: str,
        text: str,
        existing: ExistingPageMetadata,
        brand: Optional[Brand] = None,
    ) -> MetadataResult:
        """Return a success :class:`MetadataResult` for *url*.

        Raises:
            GenerationError: on service failure or an unusable answer.
        """
        user_prompt = build_user_prompt(url, text, existing, brand)
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=self._temperature,
                response_format={"type": "json_object"},
            )
        except openai.APITimeoutError:
            raise GenerationError("Generation service timed out")
        except openai.OpenAIError as exc:
            raise GenerationError(f"Generation service error: {exc}")

        raw = response.choices[0].message.content if response.choices else None
        generated = parse_generation(raw)
        return resolve_metadata(url, generated, existing)


def create_openai_client() -> openai.AsyncOpenAI:
    """Build the async client from the settings in :mod:`metagen.config`."""
    default_query = {"api-version": config.OPENAI_API_VERSION} if config.OPENAI_API_VERSION else None
    return openai.AsyncOpenAI(
        api_key=config.OPENAI_API_KEY,
        base_url=config.OPENAI_BASE_URL,
        default_query=default_query,
        timeout=config.GENERATION_TIMEOUT,
        max_retries=0,
    )
