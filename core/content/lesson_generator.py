"""
AI lesson generation.

Asks a chat model for a JLPT-level lesson on a topic (or for a single word
explanation) and validates the JSON reply into a Lesson (or VocabItem).
Gemini is reached through its OpenAI-compatible endpoint, so both
providers share the openai client.

Usage:
    from core.content.lesson_generator import generate_lesson, lookup_word

    lesson = generate_lesson("at the train station", JLPTLevel.N5, settings)
    vocab = lookup_word("切符", settings)
"""

from __future__ import annotations

import json
import logging
import re
import uuid
from typing import Any, Optional

from openai import OpenAI, OpenAIError
from pydantic import ValidationError

from core import config
from core.errors import ConfigError, ContentGenerationError
from core.schemas import JLPTLevel, Lesson, Settings, VocabItem
from core.srs.scheduler import now_ms

logger = logging.getLogger(__name__)


# Section sizes per level
LEVEL_CONFIG = {
    JLPTLevel.N5: {"vocab": 15, "grammar": 3, "dialogue": 8, "essay": 10},
    JLPTLevel.N4: {"vocab": 20, "grammar": 3, "dialogue": 10, "essay": 12},
    JLPTLevel.N3: {"vocab": 30, "grammar": 5, "dialogue": 15, "essay": 15},
    JLPTLevel.N2: {"vocab": 40, "grammar": 6, "dialogue": 20, "essay": 20},
    JLPTLevel.N1: {"vocab": 50, "grammar": 8, "dialogue": 25, "essay": 25},
}

SYSTEM_PROMPT = "You are an expert Japanese JLPT instructor. Output strict valid JSON."

LESSON_PROMPT = """Create a Japanese lesson about: {topic}
Target level: JLPT {level}. Use vocabulary and grammar suitable for {level}.

Output strictly valid JSON (RFC 8259), no markdown, with this structure:
{{
  "title": [{{"text": "...", "furigana": "..."}}],
  "vocabulary": [ // {vocab} items
    {{"word": [{{"text": "...", "furigana": "..."}}], "reading": "hiragana", "meaning": "...",
      "grammar_tag": "noun", "example": {{"text": [{{"text": "...", "furigana": "..."}}],
      "translation": "...", "grammar_point": "..."}}}}
  ],
  "grammar": [ // {grammar} items
    {{"point": "...", "explanation": "...", "example": {{"text": [...], "translation": "..."}}}}
  ],
  "texts": {{
    "dialogue": [ // {dialogue} lines
      {{"role": "A", "name": "...", "text": [...], "translation": "..."}}
    ],
    "essay": {{"title": "...", "content": [ // {essay} sentences
      {{"text": [...], "translation": "..."}}
    ]}}
  }}
}}
Only kanji segments carry furigana."""

WORD_PROMPT = """Explain this Japanese word or phrase: {query}

Output strictly valid JSON (RFC 8259), no markdown, with this structure:
{{"word": [{{"text": "...", "furigana": "..."}}], "reading": "hiragana", "meaning": "...",
  "grammar_tag": "part of speech", "example": {{"text": [{{"text": "...", "furigana": "..."}}],
  "translation": "...", "grammar_point": "grammar notes for the example"}}}}
Only kanji segments carry furigana."""


def get_client(settings: Settings) -> tuple[OpenAI, str]:
    """
    Client and model name for the provider selected in settings.

    Keys come from settings first, then from the environment.

    Raises:
        ConfigError: if the selected provider has no API key
    """
    if settings.selected_model == "gemini":
        api_key = settings.gemini_key or config.get_api_key("gemini")
        if not api_key:
            raise ConfigError("Missing Gemini API key")
        return OpenAI(api_key=api_key, base_url=config.GEMINI_BASE_URL), config.GEMINI_MODEL

    api_key = settings.openai_key or config.get_api_key("openai")
    if not api_key:
        raise ConfigError("Missing OpenAI API key")
    return OpenAI(api_key=api_key), config.OPENAI_MODEL


def build_prompt(topic: str, level: JLPTLevel) -> str:
    counts = LEVEL_CONFIG[level]
    return LESSON_PROMPT.format(topic=topic, level=level.value, **counts)


def parse_json_reply(text: str) -> dict[str, Any]:
    """
    Parse a model reply, tolerating a markdown code fence around the JSON.

    Raises:
        ContentGenerationError: if no JSON object can be recovered
    """
    try:
        data = json.loads(text)
    except ValueError:
        match = re.search(r"\{.*\}", text, re.DOTALL)
        if match is None:
            raise ContentGenerationError("Model reply contains no JSON object")
        try:
            data = json.loads(match.group(0))
        except ValueError as exc:
            raise ContentGenerationError("Model reply is not valid JSON") from exc

    if not isinstance(data, dict):
        raise ContentGenerationError("Model reply is not a JSON object")
    return data


def _resolve_client(
    settings: Settings,
    client: Optional[OpenAI],
    model: Optional[str]
) -> tuple[OpenAI, str]:
    if client is None:
        return get_client(settings)
    if model is None:
        model = config.GEMINI_MODEL if settings.selected_model == "gemini" else config.OPENAI_MODEL
    return client, model


def request_json(client: OpenAI, model: str, prompt: str) -> dict[str, Any]:
    """
    Send one prompt in JSON mode and parse the reply.

    Raises:
        ContentGenerationError: if the API call fails or the reply is not a JSON object
    """
    try:
        response = client.chat.completions.create(
            model=model,
            response_format={"type": "json_object"},
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
        )
    except OpenAIError as exc:
        raise ContentGenerationError(f"Content generation failed: {exc}") from exc

    return parse_json_reply(response.choices[0].message.content or "")


def generate_lesson(
    topic: str,
    level: JLPTLevel,
    settings: Settings,
    client: Optional[OpenAI] = None,
    model: Optional[str] = None
) -> Lesson:
    """
    Generate a lesson for a topic at a JLPT level.

    Args:
        topic: Lesson topic (free text)
        level: Target JLPT level
        settings: User settings (model selection and API keys)
        client: Pre-built client (skips provider selection)
        model: Model name to use with `client`

    Returns:
        Lesson with a fresh id and creation time

    Raises:
        ConfigError: if no API key is available
        ContentGenerationError: if the API call fails or the reply is unusable
    """
    level = JLPTLevel(level)
    client, model = _resolve_client(settings, client, model)

    logger.info("Generating %s lesson on %r with %s", level.value, topic, model)
    data = request_json(client, model, build_prompt(topic, level))
    data.update(
        id=str(uuid.uuid4()),
        topic=topic,
        level=level.value,
        created_at=now_ms(),
    )
    try:
        lesson = Lesson.model_validate(data)
    except ValidationError as exc:
        raise ContentGenerationError(f"Model reply does not match the lesson structure: {exc}") from exc

    logger.info("Generated lesson %s with %d vocabulary items", lesson.id, len(lesson.vocabulary))
    return lesson


def lookup_word(
    query: str,
    settings: Settings,
    client: Optional[OpenAI] = None,
    model: Optional[str] = None
) -> VocabItem:
    """
    Explain a single word or phrase as a vocabulary item.

    Raises:
        ValueError: if `query` is blank
        ConfigError: if no API key is available
        ContentGenerationError: if the API call fails or the reply is unusable
    """
    query = query.strip()
    if not query:
        raise ValueError("Lookup query is empty")

    client, model = _resolve_client(settings, client, model)
    logger.info("Looking up %r with %s", query, model)
    data = request_json(client, model, WORD_PROMPT.format(query=query))
    try:
        return VocabItem.model_validate(data)
    except ValidationError as exc:
        raise ContentGenerationError(f"Model reply does not match the word structure: {exc}") from exc
