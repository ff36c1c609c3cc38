from llm_song_cards import prompts


def test_batch_prompt_numbers_lines_within_the_batch() -> None:
    prompt = prompts.create_lyrics_parser_prompt(["夢を見た", "空を見た"])
    assert "1. 夢を見た\n2. 空を見た" in prompt
    assert "There are 2 lines; return exactly 2 entries" in prompt
    assert '"lines"' in prompt


def test_empty_batch_still_asks_for_an_empty_result() -> None:
    prompt = prompts.create_lyrics_parser_prompt([])
    assert "(no lines)" in prompt
    assert "There are 0 lines; return exactly 0 entries" in prompt
    assert '"lines"' in prompt


def test_card_prompt_count_wording() -> None:
    assert "Extract 1-3 important vocabulary words" in prompts.create_card_generation_prompt("夢を見た")
    assert "Extract 1-5 important" in prompts.create_card_generation_prompt("夢を見た", count=5)
    assert "Extract 1-1 important" in prompts.create_card_generation_prompt("夢を見た", count=1)


def test_card_prompt_includes_translation_only_when_given() -> None:
    with_zh = prompts.create_card_generation_prompt("夢を見た", "做了个梦", count=2)
    assert "Line: 夢を見た" in with_zh
    assert "Reference translation: 做了个梦" in with_zh
    assert "Reference translation" not in prompts.create_card_generation_prompt("夢を見た", count=2)


def test_lyric_lines_for_prompt_flattens_newlines() -> None:
    lines = prompts.lyric_lines_for_prompt(["夢を\n見た", "  空 ", "一行"])
    assert lines == ["夢を 見た", "空", "一行"]
    prompt = prompts.create_lyrics_parser_prompt(lines)
    assert "1. 夢を 見た\n2. 空\n3. 一行" in prompt


def test_system_prompts_name_their_output_key() -> None:
    assert prompts.lyrics_parser_system_prompt().endswith('{"lines": [...]}.')
    assert prompts.card_generation_system_prompt().endswith('{"cards": [...]}.')
    assert "hiragana" in prompts.LYRICS_PARSER_SYSTEM_PROMPT


def test_single_line_prompt_contains_the_line() -> None:
    prompt = prompts.create_single_line_parser_prompt("君の名は")
    assert "\n君の名は\n" in prompt
    assert '"contentZh"' in prompt
