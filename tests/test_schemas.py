import pytest

from core.schemas import FuriganaSegment, Lesson, VocabItem


@pytest.mark.parametrize("text, furigana, expected", [
    ("猫", "ねこ", "ねこ"),
    ("食べ", "たべ", "たべ"),
    ("ねこ", "ねこ", None),
    ("です", "desu", None),
    ("猫", "猫", None),
    ("猫", "", None),
    ("カメラ", "かめら", None),
])
def test_furigana_is_kept_only_on_kanji(text, furigana, expected):
    assert FuriganaSegment(text=text, furigana=furigana).furigana == expected


def test_plain_string_word_and_example_become_segments():
    vocab = VocabItem.model_validate({
        "word": "ねこ",
        "reading": "ねこ",
        "meaning": "cat",
        "example": {"text": "ねこがいます", "translation": "There is a cat"},
    })

    assert [s.text for s in vocab.word] == ["ねこ"]
    assert vocab.text == "ねこ"
    assert [s.text for s in vocab.example.text] == ["ねこがいます"]


def test_mixed_segment_lists_and_bare_example_are_coerced():
    vocab = VocabItem.model_validate({
        "word": [{"text": "猫", "furigana": "ねこ"}, "ちゃん"],
        "example": "猫ちゃんです",
    })

    assert [(s.text, s.furigana) for s in vocab.word] == [("猫", "ねこ"), ("ちゃん", None)]
    assert vocab.example.text[0].text == "猫ちゃんです"


def test_missing_segments_default_to_empty():
    vocab = VocabItem.model_validate({"word": None, "example": None})

    assert vocab.word == []
    assert vocab.example.text == []


def test_lesson_with_string_segments_is_valid():
    lesson = Lesson.model_validate({
        "id": "a",
        "title": "ねこの話",
        "vocabulary": [{"word": "ねこ", "meaning": "cat"}],
        "grammar": [{"point": "〜がいます", "example": {"text": "ねこがいます"}}],
    })

    assert lesson.title_text == "ねこの話"
    assert lesson.vocabulary[0].text == "ねこ"
    assert lesson.grammar[0].example.text[0].text == "ねこがいます"
