from llm_song_cards.extraction import extract_json, extract_json_object


def test_plain_json_parses_directly() -> None:
    assert extract_json('{"cards": []}') == {"cards": []}


def test_prose_before_and_after_object() -> None:
    text = 'Sure! Here is the result:\n{"cards": [{"word": "夢"}]}\nHope this helps {not json}'
    assert extract_json(text) == {"cards": [{"word": "夢"}]}


def test_braces_inside_strings_do_not_end_the_object() -> None:
    text = 'Result: {"meaning": "curly } brace { inside", "n": 1} trailing'
    assert extract_json(text) == {"meaning": "curly } brace { inside", "n": 1}


def test_escaped_quotes_inside_strings() -> None:
    text = 'x {"word": "say \\"hi\\" }", "ok": true} y'
    assert extract_json(text) == {"word": 'say "hi" }', "ok": True}


def test_nested_objects() -> None:
    text = 'prefix {"lines": [{"furigana": [{"start": 0, "end": 1}]}]} suffix'
    assert extract_json(text) == {"lines": [{"furigana": [{"start": 0, "end": 1}]}]}


def test_no_opening_brace_returns_none(capsys) -> None:
    assert extract_json("I could not do that, sorry.") is None
    assert "No JSON object found" in capsys.readouterr().out


def test_unbalanced_object_returns_none() -> None:
    assert extract_json('here: {"cards": [{"word": "夢"}') is None


def test_balanced_but_invalid_json_returns_none() -> None:
    assert extract_json("result {cards: [1, 2]}") is None


def test_empty_text_returns_none() -> None:
    assert extract_json("") is None


def test_failure_snippet_is_truncated(capsys) -> None:
    extract_json("x" * 1000)
    out = capsys.readouterr().out
    assert "x" * 200 in out
    assert "x" * 201 not in out


def test_extract_json_object_key_handling() -> None:
    assert extract_json_object('{"cards": [1, 2]}', "cards") == [1, 2]
    assert extract_json_object('{"other": 1}', "cards") == []
    assert extract_json_object('{"cards": "nope"}', "cards") is None
    assert extract_json_object("no json here", "cards") is None
