"""
Pydantic models for lessons and user settings.

Lessons are produced by the content-generation API and archived as-is
(one document per lesson). Settings are stored both in the local store
and, for signed-in users, in the remote store.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Annotated, Any, Literal, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class JLPTLevel(str, Enum):
    """Japanese-Language Proficiency Test levels (N5 easiest)."""
    N5 = "N5"
    N4 = "N4"
    N3 = "N3"
    N2 = "N2"
    N1 = "N1"


AIModel = Literal["gemini", "openai"]
TTSProvider = Literal["browser", "google_cloud", "openai"]


# ---- Settings ----

class Settings(BaseModel):
    """
    Per-user application settings.

    Accepts both snake_case and the camelCase keys written by older
    clients (geminiKey, selectedModel, ...). Unknown keys are ignored.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    gemini_key: str = ""
    openai_key: str = ""
    google_tts_key: str = Field(default="", alias="googleTTSKey")
    selected_model: AIModel = "gemini"
    tts_provider: TTSProvider = "browser"
    user_name: str = "Guest"

    def merged_with(self, overrides: dict[str, Any]) -> "Settings":
        """
        Return a copy with every field present in `overrides` replaced.

        Fields missing from `overrides` keep their current value.
        """
        incoming = Settings.model_validate(overrides)
        return self.model_copy(update=incoming.model_dump(exclude_unset=True))


# ---- Lesson Content ----

_KANJI = re.compile(r"[\u4e00-\u9fff]")


class FuriganaSegment(BaseModel):
    """
    A run of text with an optional reading shown above it.

    Only segments containing kanji keep their furigana; a reading on kana
    or one identical to the text is dropped.
    """
    text: str
    furigana: Optional[str] = None

    @model_validator(mode="after")
    def _drop_redundant_furigana(self) -> "FuriganaSegment":
        if self.furigana is not None and (
            not self.furigana or self.furigana == self.text or not _KANJI.search(self.text)
        ):
            self.furigana = None
        return self


def _coerce_segments(value: Any) -> Any:
    # Model replies sometimes give a plain string instead of segments
    if value is None:
        return []
    if isinstance(value, (str, dict)):
        value = [value]
    if isinstance(value, list):
        return [{"text": part} if isinstance(part, str) else part for part in value]
    return value


Segments = Annotated[list[FuriganaSegment], BeforeValidator(_coerce_segments)]


def join_segments(segments: list[FuriganaSegment]) -> str:
    """Plain surface text of a segmented string."""
    return "".join(segment.text for segment in segments)


class VocabExample(BaseModel):
    """Example sentence for a vocabulary item."""
    text: Segments = Field(default_factory=list)
    translation: str = ""
    grammar_point: str = ""


class VocabItem(BaseModel):
    """A single vocabulary fragment of a lesson."""
    model_config = ConfigDict(extra="ignore")

    word: Segments = Field(default_factory=list, description="Word split into furigana segments")
    reading: str = Field(default="", description="Reading in hiragana")
    meaning: str = ""
    grammar_tag: str = Field(default="", description="Part of speech / grammar category")
    example: VocabExample = Field(default_factory=VocabExample)

    @field_validator("example", mode="before")
    @classmethod
    def _coerce_example(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, str):
            return {"text": value}
        return value

    @property
    def text(self) -> str:
        return join_segments(self.word)


class GrammarExample(BaseModel):
    text: Segments = Field(default_factory=list)
    translation: str = ""


class GrammarItem(BaseModel):
    """A grammar point taught by a lesson."""
    model_config = ConfigDict(extra="ignore")

    point: str
    explanation: str = ""
    example: GrammarExample = Field(default_factory=GrammarExample)


class Lesson(BaseModel):
    """
    An AI-generated lesson.

    `id` is unique per lesson and is the archival idempotency key.
    `texts` (dialogue and essay) is kept opaque.
    """
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    topic: str = ""
    level: JLPTLevel = JLPTLevel.N5
    title: Segments = Field(default_factory=list)
    vocabulary: list[VocabItem] = Field(default_factory=list)
    grammar: list[GrammarItem] = Field(default_factory=list)
    texts: dict[str, Any] = Field(default_factory=dict)
    created_at: int = Field(default=0, alias="createdAt", description="Epoch milliseconds")

    @property
    def title_text(self) -> str:
        return join_segments(self.title)

    def to_document(self) -> dict[str, Any]:
        """JSON-serializable document for either store."""
        return self.model_dump(mode="json")
