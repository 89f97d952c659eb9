"""Tests for the metadata generator: response parsing, fallbacks and the model call."""

import asyncio
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock

import httpx
import openai
import pytest

from metagen.models.brand import Brand
from metagen.models.result import ExistingPageMetadata
from metagen.services.generator import (
    NO_DESCRIPTION,
    UNTITLED_PAGE,
    EmptyGenerationError,
    GeneratedMetadata,
    GenerationError,
    GenerationParseError,
    InvalidGenerationResponse,
    MetadataGenerator,
    build_user_prompt,
    parse_generation,
    resolve_metadata,
    title_from_url,
)

_URL = "https://shop.example/summer-sale"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def _fake_client(content=None, side_effect=None):
    create = AsyncMock(return_value=_completion(content), side_effect=side_effect)
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


def _generate(client, existing=None, brand=None, text="Page text"):
    generator = MetadataGenerator(client, model="test-model")
    return asyncio.run(
        generator.generate(_URL, text, existing or ExistingPageMetadata(), brand)
    )


# ---------------------------------------------------------------------------
# parse_generation
# ---------------------------------------------------------------------------

class TestParseGeneration:
    def test_parses_all_fields(self):
        raw = json.dumps(
            {"title": "T", "description": "D", "ogTitle": "OT", "ogDescription": "OD"}
        )
        generated = parse_generation(raw)
        assert generated.title == "T"
        assert generated.description == "D"
        assert generated.og_title == "OT"
        assert generated.og_description == "OD"

    def test_missing_fields_are_none(self):
        generated = parse_generation('{"description": "Only this"}')
        assert generated.title is None
        assert generated.description == "Only this"

    def test_extra_fields_ignored(self):
        generated = parse_generation('{"title": "T", "keywords": ["a", "b"]}')
        assert generated.title == "T"

    def test_empty_content_raises(self):
        with pytest.raises(EmptyGenerationError):
            parse_generation(None)
        with pytest.raises(EmptyGenerationError):
            parse_generation("   ")

    def test_invalid_json_raises_with_raw_content(self):
        with pytest.raises(GenerationParseError) as exc_info:
            parse_generation("Sure! Here is your metadata: {")
        assert exc_info.value.raw == "Sure! Here is your metadata: {"

    def test_non_object_json_is_invalid(self):
        with pytest.raises(InvalidGenerationResponse):
            parse_generation('["title", "description"]')

    def test_non_string_field_is_invalid(self):
        with pytest.raises(InvalidGenerationResponse) as exc_info:
            parse_generation('{"title": 42}')
        assert "title" in str(exc_info.value)

    def test_all_errors_are_generation_errors(self):
        for raw in ("", "not json", "[]"):
            with pytest.raises(GenerationError):
                parse_generation(raw)


# ---------------------------------------------------------------------------
# resolve_metadata
# ---------------------------------------------------------------------------

class TestResolveMetadata:
    def test_generated_values_win(self):
        result = resolve_metadata(
            _URL,
            GeneratedMetadata(title="New", description="New desc", og_title="OG", og_description="OG desc"),
            ExistingPageMetadata(title="Old", description="Old desc"),
        )
        assert result.status == "success"
        assert result.error is None
        assert result.page_title == "New"
        assert result.meta_description == "New desc"
        assert result.og_title == "OG"
        assert result.og_description == "OG desc"

    def test_missing_title_falls_back_to_existing_title(self):
        generated = parse_generation('{"description": "Fresh description"}')
        result = resolve_metadata(_URL, generated, ExistingPageMetadata(title="Old Title"))
        assert result.page_title == "Old Title"
        assert result.page_title != UNTITLED_PAGE

    def test_title_falls_back_to_url_segment(self):
        result = resolve_metadata(_URL, GeneratedMetadata(), ExistingPageMetadata())
        assert result.page_title == "summer sale"

    def test_placeholders_are_last_resort(self):
        result = resolve_metadata("https://shop.example/", GeneratedMetadata(), ExistingPageMetadata())
        assert result.page_title == UNTITLED_PAGE
        assert result.meta_description == NO_DESCRIPTION

    def test_og_fields_fall_back_to_existing_og(self):
        result = resolve_metadata(
            _URL,
            GeneratedMetadata(title="T", description="D"),
            ExistingPageMetadata(og_title="Existing OG", og_description="Existing OG desc"),
        )
        assert result.og_title == "Existing OG"
        assert result.og_description == "Existing OG desc"

    def test_og_fields_fall_back_to_resolved_title_and_description(self):
        result = resolve_metadata(
            _URL,
            GeneratedMetadata(title="T", description="D"),
            ExistingPageMetadata(),
        )
        assert result.og_title == "T"
        assert result.og_description == "D"

    def test_blank_generated_values_count_as_missing(self):
        result = resolve_metadata(
            _URL,
            GeneratedMetadata(title="   ", description=""),
            ExistingPageMetadata(title="Old", description="Old desc"),
        )
        assert result.page_title == "Old"
        assert result.meta_description == "Old desc"

    def test_success_fields_are_never_empty(self):
        result = resolve_metadata("https://x.example", GeneratedMetadata(), ExistingPageMetadata())
        for value in (result.page_title, result.meta_description, result.og_title, result.og_description):
            assert isinstance(value, str) and value


class TestTitleFromUrl:
    def test_last_segment(self):
        assert title_from_url("https://a.example/blog/my-first_post") == "my first post"

    def test_strips_extension_and_decodes(self):
        assert title_from_url("https://a.example/caf%C3%A9-menu.html") == "café menu"

    def test_trailing_slash(self):
        assert title_from_url("https://a.example/recipes/") == "recipes"

    def test_bare_domain(self):
        assert title_from_url("https://a.example") == ""


# ---------------------------------------------------------------------------
# build_user_prompt
# ---------------------------------------------------------------------------

class TestBuildUserPrompt:
    def test_truncates_page_text(self):
        prompt = build_user_prompt(_URL, "x" * 5000, ExistingPageMetadata())
        assert "x" * 1500 in prompt
        assert "x" * 1501 not in prompt

    def test_includes_existing_metadata(self):
        prompt = build_user_prompt(
            _URL, "text", ExistingPageMetadata(title="Old", og_description="OG D")
        )
        assert "Title: Old" in prompt
        assert "OG Description: OG D" in prompt
        assert _URL in prompt

    def test_includes_brand_context(self):
        brand = Brand(
            id="b1",
            name="Acme",
            language="Dutch",
            country="NL",
            tone_of_voice="Playful",
            guardrails=["Never mention competitors"],
        )
        prompt = build_user_prompt(_URL, "text", ExistingPageMetadata(), brand)
        assert "Brand: Acme" in prompt
        assert "Language: Dutch" in prompt
        assert "Tone of voice: Playful" in prompt
        assert "- Never mention competitors" in prompt


# ---------------------------------------------------------------------------
# MetadataGenerator.generate
# ---------------------------------------------------------------------------

class TestMetadataGenerator:
    def test_returns_success_result(self):
        client = _fake_client(
            '{"title": "Summer Sale", "description": "Half price", '
            '"ogTitle": "Sale!", "ogDescription": "Half price on everything"}'
        )
        result = _generate(client)
        assert result.url == _URL
        assert result.status == "success"
        assert result.page_title == "Summer Sale"
        assert result.og_description == "Half price on everything"

    def test_requests_json_object(self):
        client = _fake_client('{"title": "T", "description": "D"}')
        _generate(client)
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["model"] == "test-model"
        roles = [m["role"] for m in kwargs["messages"]]
        assert roles == ["system", "user"]

    def test_fallback_to_existing_title(self):
        client = _fake_client('{"description": "Fresh"}')
        result = _generate(client, existing=ExistingPageMetadata(title="Old Title"))
        assert result.page_title == "Old Title"

    def test_no_content_raises(self):
        with pytest.raises(EmptyGenerationError):
            _generate(_fake_client(None))

    def test_unparseable_content_raises(self):
        with pytest.raises(GenerationParseError):
            _generate(_fake_client("not json"))

    def test_service_timeout_is_wrapped(self):
        request = httpx.Request("POST", "https://api.example/v1/chat/completions")
        client = _fake_client(side_effect=openai.APITimeoutError(request=request))
        with pytest.raises(GenerationError, match="timed out"):
            _generate(client)

    def test_service_error_is_wrapped(self):
        request = httpx.Request("POST", "https://api.example/v1/chat/completions")
        client = _fake_client(side_effect=openai.APIConnectionError(request=request))
        with pytest.raises(GenerationError, match="Generation service error"):
            _generate(client)
