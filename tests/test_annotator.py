import json

import pytest

from llm_song_cards import annotator
from llm_song_cards.exceptions import AIResponseError, LyricsParseError

from conftest import MockAIModel, lines_reply


def make_lyrics(n: int) -> list[str]:
    return [f"歌詞の{i + 1}行目" for i in range(n)]


def test_split_batches_sizes() -> None:
    batches = annotator.split_batches(make_lyrics(20), 8)
    assert [start for start, _ in batches] == [0, 8, 16]
    assert [len(batch) for _, batch in batches] == [8, 8, 4]


def test_split_batches_rejects_zero() -> None:
    with pytest.raises(ValueError):
        annotator.split_batches(make_lyrics(3), 0)


def test_twenty_lines_make_three_sequential_calls() -> None:
    lyrics = make_lyrics(20)
    model = MockAIModel([lines_reply(lyrics[0:8]), lines_reply(lyrics[8:16]), lines_reply(lyrics[16:20])])

    parsed = annotator.parse_lyrics(lyrics, model)

    assert len(model.calls) == 3
    assert "8 lines" in model.calls[0][1]
    assert "4 lines" in model.calls[2][1]
    assert [p.line_number for p in parsed] == list(range(1, 21))
    assert [p.content_ja for p in parsed] == lyrics
    assert parsed[19].content_zh == f"译:{lyrics[19]}"


def test_all_batches_failing_yield_placeholders() -> None:
    lyrics = make_lyrics(10)
    model = MockAIModel([RuntimeError("timeout"), RuntimeError("timeout")])

    parsed = annotator.parse_lyrics(lyrics, model)

    assert len(parsed) == 10
    for i, line in enumerate(parsed):
        assert line.line_number == i + 1
        assert line.content_ja == lyrics[i]
        assert line.content_zh == ""
        assert line.furigana == "[]"
        assert line.tokens == "[]"


def test_middle_batch_failure_only_affects_that_batch() -> None:
    lyrics = make_lyrics(20)
    model = MockAIModel([lines_reply(lyrics[0:8]), "no json at all", lines_reply(lyrics[16:20])])

    parsed = annotator.parse_lyrics(lyrics, model)

    assert len(parsed) == 20
    assert all(p.content_zh for p in parsed[:8])
    assert all(p.content_zh == "" for p in parsed[8:16])
    assert all(p.content_zh for p in parsed[16:])


def test_short_reply_is_padded_with_placeholders() -> None:
    lyrics = make_lyrics(3)
    model = MockAIModel([lines_reply(lyrics[:2])])

    parsed = annotator.parse_lyrics(lyrics, model)

    assert [p.line_number for p in parsed] == [1, 2, 3]
    assert parsed[2].content_ja == lyrics[2]
    assert parsed[2].content_zh == ""


def test_model_echo_never_replaces_original_text() -> None:
    lyrics = ["君の名は"]
    reply = json.dumps({"lines": [{"contentJa": "別の文", "contentZh": "你的名字", "furigana": [], "tokens": []}]})
    parsed = annotator.parse_lyrics(lyrics, MockAIModel([reply]))
    assert parsed[0].content_ja == "君の名は"
    assert parsed[0].content_zh == "你的名字"


def test_furigana_offsets_are_repaired() -> None:
    lyrics = ["空を見る"]
    reply = json.dumps({"lines": [{
        "contentZh": "看天空",
        "furigana": [
            {"word": "見", "reading": "み", "start": 0, "end": 1},
            {"word": "空", "reading": "そら", "start": 0, "end": 1},
            {"word": "海", "reading": "うみ", "start": 0, "end": 1},
        ],
        "tokens": [],
    }]}, ensure_ascii=False)

    parsed = annotator.parse_lyrics(lyrics, MockAIModel([reply]))
    spans = parsed[0].furigana_spans()

    assert [(s.word, s.start, s.end) for s in spans] == [("見", 2, 3), ("空", 0, 1)]
    for span in spans:
        assert lyrics[0][span.start:span.end] == span.word


def test_reply_without_lines_gives_placeholders() -> None:
    parsed = annotator.parse_lyrics_batch(["夢", "空"], 8, MockAIModel(['{"result": "ok"}']))
    assert [(p.line_number, p.content_ja, p.content_zh) for p in parsed] == [(9, "夢", ""), (10, "空", "")]


def test_parse_lyrics_batch_raises_without_json() -> None:
    with pytest.raises(AIResponseError):
        annotator.parse_lyrics_batch(["夢"], 0, MockAIModel(["I could not do that"]))


def test_failing_exchange_hook_keeps_the_reply() -> None:
    lyrics = make_lyrics(2)

    def broken_recorder(*args: object) -> None:
        raise RuntimeError("database is locked")

    parsed = annotator.parse_lyrics(lyrics, MockAIModel([lines_reply(lyrics)]), on_exchange=broken_recorder)

    assert [p.content_zh for p in parsed] == [f"译:{line}" for line in lyrics]


def test_exchanges_are_reported() -> None:
    seen = []
    lyrics = make_lyrics(2)
    annotator.parse_lyrics(lyrics, MockAIModel([lines_reply(lyrics)]), on_exchange=lambda *a: seen.append(a))
    assert len(seen) == 1
    system, prompt, response = seen[0]
    assert "lines" in system
    assert "1. 歌詞の1行目" in prompt
    assert response.text().startswith("{")


def test_single_line_parsing() -> None:
    reply = json.dumps({
        "contentZh": "梦",
        "furigana": [{"word": "夢", "reading": "ゆめ", "start": 0, "end": 1}],
        "tokens": [{"word": "夢", "reading": "ゆめ", "pos": "名詞"}],
    }, ensure_ascii=False)
    result = annotator.parse_single_line("夢を見た", MockAIModel([reply]))
    assert result.content_zh == "梦"
    assert result.furigana[0].reading == "ゆめ"
    assert result.tokens[0].pos == "名詞"


def test_single_line_parsing_raises_on_failure() -> None:
    with pytest.raises(LyricsParseError):
        annotator.parse_single_line("夢", MockAIModel([RuntimeError("boom")]))
    with pytest.raises(LyricsParseError):
        annotator.parse_single_line("夢", MockAIModel(["sorry"]))
