import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import pytest
from openai import APIConnectionError

from core.content import lesson_generator
from core.content.lesson_generator import build_prompt, generate_lesson, get_client, lookup_word, parse_json_reply
from core.errors import ConfigError, ContentGenerationError
from core.schemas import JLPTLevel, Settings

LESSON_JSON = {
    "title": [{"text": "駅", "furigana": "えき"}, {"text": "で"}],
    "vocabulary": [
        {
            "word": [{"text": "切符", "furigana": "きっぷ"}],
            "reading": "きっぷ",
            "meaning": "ticket",
            "grammar_tag": "noun",
            "example": {"text": [{"text": "切符を買います"}], "translation": "I buy a ticket", "grammar_point": "を"},
        },
        {"word": [{"text": "電車", "furigana": "でんしゃ"}], "reading": "でんしゃ", "meaning": "train"},
    ],
    "grammar": [{"point": "〜ます", "explanation": "polite form"}],
    "texts": {"dialogue": [], "essay": {"title": "", "content": []}},
}


def fake_client(content):
    client = MagicMock()
    client.chat.completions.create.return_value = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))]
    )
    return client


def test_generate_lesson_validates_reply():
    client = fake_client(json.dumps(LESSON_JSON, ensure_ascii=False))

    lesson = generate_lesson("station", JLPTLevel.N4, Settings(), client=client, model="test-model")

    assert lesson.topic == "station"
    assert lesson.level == JLPTLevel.N4
    assert lesson.title_text == "駅で"
    assert [v.text for v in lesson.vocabulary] == ["切符", "電車"]
    assert lesson.id
    assert lesson.created_at > 0

    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "test-model"
    assert kwargs["response_format"] == {"type": "json_object"}
    assert "JLPT N4" in kwargs["messages"][1]["content"]


def test_each_generated_lesson_gets_a_new_id():
    client = fake_client(json.dumps(LESSON_JSON))

    first = generate_lesson("station", "N5", Settings(), client=client)
    second = generate_lesson("station", "N5", Settings(), client=client)

    assert first.id != second.id


def test_reply_wrapped_in_markdown_fence_is_accepted():
    content = "```json\n" + json.dumps(LESSON_JSON) + "\n```"

    lesson = generate_lesson("station", JLPTLevel.N5, Settings(), client=fake_client(content))

    assert len(lesson.vocabulary) == 2


@pytest.mark.parametrize("content", ["", "no json here", "[1, 2, 3]", '{"vocabulary": "oops"}'])
def test_unusable_reply_raises(content):
    with pytest.raises(ContentGenerationError):
        generate_lesson("station", JLPTLevel.N5, Settings(), client=fake_client(content))


def test_api_failure_is_wrapped():
    client = MagicMock()
    client.chat.completions.create.side_effect = APIConnectionError(
        request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    )

    with pytest.raises(ContentGenerationError):
        generate_lesson("station", JLPTLevel.N5, Settings(), client=client)


def test_prompt_uses_level_section_sizes():
    prompt = build_prompt("weather", JLPTLevel.N1)

    assert "weather" in prompt
    assert "// 50 items" in prompt
    assert "// 8 items" in prompt


def test_parse_json_reply_plain_object():
    assert parse_json_reply('{"a": 1}') == {"a": 1}


def test_get_client_requires_key_for_selected_provider(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    with pytest.raises(ConfigError):
        get_client(Settings(selected_model="gemini"))
    with pytest.raises(ConfigError):
        get_client(Settings(selected_model="openai", gemini_key="only-gemini"))


def test_get_client_routes_gemini_to_compatible_endpoint(monkeypatch):
    created = {}

    def fake_openai(**kwargs):
        created.update(kwargs)
        return MagicMock()

    monkeypatch.setattr(lesson_generator, "OpenAI", fake_openai)

    _, model = get_client(Settings(selected_model="gemini", gemini_key="g-key"))

    assert created == {"api_key": "g-key", "base_url": lesson_generator.config.GEMINI_BASE_URL}
    assert model == lesson_generator.config.GEMINI_MODEL


def test_get_client_falls_back_to_environment_key(monkeypatch):
    created = {}
    monkeypatch.setenv("OPENAI_API_KEY", "env-key")
    monkeypatch.setattr(lesson_generator, "OpenAI", lambda **kwargs: created.update(kwargs))

    get_client(Settings(selected_model="openai"))

    assert created == {"api_key": "env-key"}


def test_reply_with_plain_string_segments_is_accepted():
    reply = dict(LESSON_JSON, title="ねこの話", vocabulary=[
        {"word": "ねこ", "reading": "ねこ", "meaning": "cat", "example": {"text": "ねこがいます"}},
    ])

    lesson = generate_lesson("pets", JLPTLevel.N5, Settings(), client=fake_client(json.dumps(reply)))

    assert lesson.title_text == "ねこの話"
    assert lesson.vocabulary[0].text == "ねこ"
    assert lesson.vocabulary[0].example.text[0].text == "ねこがいます"


# ---- Word Lookup ----

def test_lookup_word_returns_normalized_vocab_item():
    reply = {
        "word": [{"text": "切符", "furigana": "きっぷ"}, {"text": "を", "furigana": "を"}],
        "reading": "きっぷ",
        "meaning": "ticket",
        "grammar_tag": "noun",
        "example": {"text": "切符を買う", "translation": "buy a ticket", "grammar_point": "を marks the object"},
    }
    client = fake_client(json.dumps(reply, ensure_ascii=False))

    vocab = lookup_word("  切符 ", Settings(), client=client, model="test-model")

    assert vocab.text == "切符を"
    assert [s.furigana for s in vocab.word] == ["きっぷ", None]
    assert vocab.example.text[0].text == "切符を買う"
    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "test-model"
    assert "切符" in kwargs["messages"][1]["content"]


def test_lookup_word_accepts_plain_string_word():
    client = fake_client('{"word": "ねこ", "reading": "ねこ", "meaning": "cat"}')

    vocab = lookup_word("ねこ", Settings(), client=client)

    assert vocab.text == "ねこ"
    assert vocab.word[0].furigana is None


def test_lookup_word_rejects_blank_query():
    client = fake_client("{}")

    with pytest.raises(ValueError):
        lookup_word("   ", Settings(), client=client)
    client.chat.completions.create.assert_not_called()


@pytest.mark.parametrize("content", ["not json", '{"word": 42}'])
def test_lookup_word_unusable_reply_raises(content):
    with pytest.raises(ContentGenerationError):
        lookup_word("ねこ", Settings(), client=fake_client(content))
