"""
Prompt builders for lyric annotation and card generation.

Everything here is pure: the same input always produces the same prompt.
"""
from typing import List, Optional, Sequence

READING_GUIDE = """
READING RULES:
- Readings are always hiragana. Never romaji, never katakana.
- Small っ doubles the following consonant: 学校 → がっこう
- Long vowels in hiragana repeat the vowel: お母さん → おかあさん
- Rendaku applies in compounds: 花火 → はなび
- Particles keep their spelling: は, へ, を
"""

LYRICS_PARSER_SYSTEM_PROMPT = f"""
You are a Japanese lyrics annotation assistant. For every lyric line you:
1. Add furigana (hiragana readings) for every kanji word. This is the most important task.
2. Translate the line into natural Simplified Chinese, keeping the mood of the lyric rather than translating word by word.
3. Split the line into tokens.
{READING_GUIDE}
FURIGANA FORMAT:
[{{"word":"漢字","reading":"かんじ","start":0,"end":2}}]
- word: the kanji word exactly as it appears in the line
- start: character index of the word in the line, counting from 0
- end: index one past the last character of the word
- Only annotate kanji. Hiragana and katakana need no furigana.
- Indices must point at the exact characters in the original line.

Example for "夢の続き":
[{{"word":"夢","reading":"ゆめ","start":0,"end":1}},{{"word":"続","reading":"つづ","start":2,"end":3}}]

TOKENS FORMAT:
[{{"word":"夢","reading":"ゆめ","pos":"名詞"}}]
""".strip()

CARD_GENERATION_SYSTEM_PROMPT = f"""
You are a Japanese vocabulary assistant who helps learners pick up words from song lyrics.

Your task:
1. Pick the most useful words to learn from the given lyric line.
2. For each word give its hiragana reading, a short Simplified Chinese meaning and its part of speech.
3. Prefer content words (nouns, verbs, adjectives). Skip trivial words such as は, が, です.
{READING_GUIDE}
FIELDS:
- word: the word as written in the line (for verbs give the dictionary form)
- reading: full hiragana reading
- meaning: concise Chinese meaning (one or two phrases)
- partOfSpeech: one of noun / verb / adjective / adverb / particle / other
- wordPosition: {{"start": index, "end": index}} of the word inside the line
""".strip()

LINES_OUTPUT_SUFFIX = 'Respond with JSON only, shaped as {"lines": [...]}.'
CARDS_OUTPUT_SUFFIX = 'Respond with JSON only, shaped as {"cards": [...]}.'


def lyrics_parser_system_prompt() -> str:
    return f"{LYRICS_PARSER_SYSTEM_PROMPT}\n\n{LINES_OUTPUT_SUFFIX}"


def card_generation_system_prompt() -> str:
    return f"{CARD_GENERATION_SYSTEM_PROMPT}\n\n{CARDS_OUTPUT_SUFFIX}"


def create_lyrics_parser_prompt(lyrics: Sequence[str]) -> str:
    """User prompt for one batch of lines, numbered from 1 within the batch."""
    numbered = "\n".join(f"{i + 1}. {line}" for i, line in enumerate(lyrics))
    if not lyrics:
        numbered = "(no lines)"

    return f"""Annotate the following Japanese lyric lines with furigana and a Chinese translation.
There are {len(lyrics)} lines; return exactly {len(lyrics)} entries in the same order.

LYRICS:
{numbered}

OUTPUT (JSON only):
{{
  "lines": [
    {{
      "lineNumber": 1,
      "contentJa": "the original line, unchanged",
      "contentZh": "Chinese translation",
      "furigana": [{{"word": "漢字", "reading": "かんじ", "start": 0, "end": 2}}],
      "tokens": [{{"word": "词", "reading": "よみ", "pos": "名詞"}}]
    }}
  ]
}}

REMINDERS:
1. Annotate every kanji word with its hiragana reading.
2. start/end must match the character positions in the original line.
3. Translate every line."""


def create_card_generation_prompt(content_ja: str, content_zh: Optional[str] = None, count: int = 3) -> str:
    """User prompt asking for up to ``count`` vocabulary entries from one line."""
    lower = 1 if count > 1 else count
    prompt = f"""Extract {lower}-{count} important vocabulary words from this Japanese lyric line.

Line: {content_ja}"""
    if content_zh:
        prompt += f"\nReference translation: {content_zh}"

    prompt += """

OUTPUT (JSON only):
{
  "cards": [
    {
      "word": "word as written",
      "reading": "ひらがな",
      "meaning": "Chinese meaning",
      "partOfSpeech": "noun",
      "wordPosition": {"start": 0, "end": 1}
    }
  ]
}

The reading must be hiragana only, never romaji or katakana."""
    return prompt


def create_single_line_parser_prompt(content_ja: str) -> str:
    return f"""Annotate this Japanese lyric line:

{content_ja}

OUTPUT (JSON only):
{{
  "contentZh": "Chinese translation",
  "furigana": [{{"word": "漢字", "reading": "かんじ", "start": 0, "end": 2}}],
  "tokens": [{{"word": "词", "reading": "よみ", "pos": "名詞"}}]
}}

Readings are hiragana only; start/end are character indices into the line."""


def lyric_lines_for_prompt(lines: List[str]) -> List[str]:
    """Flatten embedded newlines so numbering in the prompt stays one-to-one."""
    return [" ".join(line.splitlines()).strip() for line in lines]
