from typing import Any

import pytest

from llm_song_cards import cards, db
from llm_song_cards.exceptions import AIConfigurationError, CardGenerationError
from llm_song_cards.structured import normalize_part_of_speech

from conftest import MockAIModel, cards_reply

FIVE_CARDS = [
    {"word": "空", "reading": "そら", "meaning": "天空", "partOfSpeech": "noun"},
    {"word": "広がる", "reading": "ひろがる", "meaning": "展开", "partOfSpeech": "verb"},
    {"word": "夜", "reading": "よる", "meaning": "夜晚", "partOfSpeech": "noun"},
    {"word": "二人", "reading": "ふたり", "meaning": "两个人", "partOfSpeech": "noun"},
    {"word": "だけ", "reading": "だけ", "meaning": "只", "partOfSpeech": "preposition"},
]


@pytest.mark.parametrize("raw,expected", [
    ("noun", "noun"),
    ("Verb", "verb"),
    ("pronoun", "other"),
    ("pron", "other"),
    ("preposition", "particle"),
    ("prep", "particle"),
    ("conjunction", "other"),
    ("interjection", "other"),
    ("onomatopoeia", "other"),
    (None, "other"),
    ("", "other"),
])
def test_normalize_part_of_speech(raw: Any, expected: str) -> None:
    assert normalize_part_of_speech(raw) == expected


def test_clamp_count() -> None:
    assert cards.clamp_count(None) == cards.DEFAULT_CARDS_PER_LINE
    assert cards.clamp_count(0) == 1
    assert cards.clamp_count(9) == 5
    assert cards.clamp_count(2) == 2


def test_generate_truncates_in_model_order() -> None:
    line = "二人だけの空が広がる夜に"
    result = cards.generate_cards_from_line(line, MockAIModel([cards_reply(FIVE_CARDS)]), count=2)
    assert [c.word for c in result] == ["空", "広がる"]


def test_generate_normalizes_and_locates_words() -> None:
    line = "二人だけの空が広がる夜に"
    result = cards.generate_cards_from_line(line, MockAIModel([cards_reply(FIVE_CARDS)]), count=5)
    assert len(result) == 5
    assert result[4].part_of_speech == "particle"
    assert result[0].word_position == {"start": 5, "end": 6}
    for card in result:
        start, end = card.word_position["start"], card.word_position["end"]
        assert line[start:end] == card.word


def test_generate_skips_malformed_entries() -> None:
    reply = cards_reply([{"reading": "なし"}, "junk", {"word": "夢", "meaning": "梦"}])
    result = cards.generate_cards_from_line("夢", MockAIModel([reply]), count=3)
    assert [c.word for c in result] == ["夢"]
    assert result[0].part_of_speech == "other"


def test_generate_raises_on_unparseable_reply() -> None:
    with pytest.raises(CardGenerationError):
        cards.generate_cards_from_line("夢", MockAIModel(["I cannot help with that."]))


def test_generate_raises_on_model_failure() -> None:
    with pytest.raises(CardGenerationError):
        cards.generate_cards_from_line("夢", MockAIModel([RuntimeError("rate limited")]))


def test_generate_requires_model() -> None:
    with pytest.raises(AIConfigurationError):
        cards.generate_cards_from_line("夢", None)


def test_configuration_errors_pass_through() -> None:
    with pytest.raises(AIConfigurationError):
        cards.generate_cards_from_line("夢", MockAIModel([AIConfigurationError("bad key")]))


def test_generated_cards_persist_in_order(song_with_lines: Any) -> None:
    _, lines = song_with_lines
    line = lines[1]
    generated = cards.generate_cards_from_line(
        line.content_ja, MockAIModel([cards_reply(FIVE_CARDS)]), content_zh=line.content_zh, count=5
    )
    for card in generated[:2]:
        db.create_card(
            line.id,
            word=card.word,
            reading=card.reading,
            meaning=card.meaning,
            part_of_speech=card.part_of_speech,
            word_position=card.word_position,
        )

    saved, total = db.get_cards(line_id=line.id)
    assert total == 2
    assert [c.word for c in db.get_cards_by_song(line.song_id)] == ["空", "広がる"]
    assert all(c.example_sentence == line.content_ja for c in saved)
    assert all(c.example_translation == line.content_zh for c in saved)
