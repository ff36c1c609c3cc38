"""
Typed shapes for what the model returns, and the coercion from loose JSON
into them. Model output is untrusted: anything that does not fit is dropped
or replaced by an empty value instead of raising.
"""
from dataclasses import dataclass, field, asdict
import json
from typing import Any, Dict, List, Optional

PART_OF_SPEECH = ("noun", "verb", "adjective", "adverb", "particle", "other")
CARD_STATUSES = ("new", "learning", "mastered")

_POS_ALIASES = {
    "preposition": "particle",
    "prep": "particle",
    "pronoun": "other",
    "pron": "other",
    "conjunction": "other",
    "conj": "other",
    "interjection": "other",
    "interj": "other",
}


@dataclass
class FuriganaSpan:
    word: str
    reading: str
    start: int
    end: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class TokenItem:
    word: str
    reading: str
    pos: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ParsedLine:
    line_number: int
    content_ja: str
    content_zh: str = ""
    furigana: str = "[]"  # JSON-encoded list of FuriganaSpan
    tokens: str = "[]"  # JSON-encoded list of TokenItem

    @classmethod
    def placeholder(cls, line_number: int, content_ja: str) -> "ParsedLine":
        return cls(line_number=line_number, content_ja=content_ja)

    def furigana_spans(self) -> List[FuriganaSpan]:
        return [FuriganaSpan(**item) for item in parse_json_list(self.furigana)]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lineNumber": self.line_number,
            "contentJa": self.content_ja,
            "contentZh": self.content_zh,
            "furigana": self.furigana,
            "tokens": self.tokens,
        }


@dataclass
class GeneratedCard:
    word: str
    reading: str
    meaning: str
    part_of_speech: str = "other"
    word_position: Optional[Dict[str, int]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "word": self.word,
            "reading": self.reading,
            "meaning": self.meaning,
            "partOfSpeech": self.part_of_speech,
            "wordPosition": self.word_position,
        }


@dataclass
class SingleLineResult:
    content_zh: str = ""
    furigana: List[FuriganaSpan] = field(default_factory=list)
    tokens: List[TokenItem] = field(default_factory=list)


def normalize_part_of_speech(pos: Optional[str]) -> str:
    """Map a free-form part-of-speech tag onto the closed set."""
    if not pos or not isinstance(pos, str):
        return "other"
    lowered = pos.strip().lower()
    if lowered in PART_OF_SPEECH:
        return lowered
    return _POS_ALIASES.get(lowered, "other")


def parse_json_list(value: Any) -> List[Dict[str, Any]]:
    """Decode a JSON list (or accept an already-decoded one); anything else is []."""
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return []
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def validate_furigana(content_ja: str, spans: List[FuriganaSpan]) -> None:
    """Raise ValueError if any span falls outside ``content_ja``."""
    length = len(content_ja)
    for span in spans:
        if not 0 <= span.start < span.end <= length:
            raise ValueError(
                f"Furigana span {span.word!r} [{span.start}, {span.end}) is outside a line of length {length}"
            )


def sanitize_furigana(content_ja: str, raw_spans: Any) -> List[FuriganaSpan]:
    """Coerce model-produced spans so every offset points at its word.

    A span whose slice does not match its word is moved to the first
    occurrence of the word at or after the claimed start, then anywhere in the
    line; spans whose word does not occur are dropped.
    """
    spans: List[FuriganaSpan] = []
    length = len(content_ja)
    for item in parse_json_list(raw_spans):
        word = item.get("word")
        reading = item.get("reading")
        if not isinstance(word, str) or not word or not isinstance(reading, str):
            continue
        try:
            start = int(item.get("start", -1))
            end = int(item.get("end", -1))
        except (TypeError, ValueError):
            start, end = -1, -1

        if not (0 <= start < end <= length and content_ja[start:end] == word):
            found = content_ja.find(word, max(start, 0))
            if found == -1:
                found = content_ja.find(word)
            if found == -1:
                continue
            start, end = found, found + len(word)
        spans.append(FuriganaSpan(word=word, reading=reading, start=start, end=end))
    return spans


def coerce_tokens(raw_tokens: Any) -> List[TokenItem]:
    tokens: List[TokenItem] = []
    for item in parse_json_list(raw_tokens):
        word = item.get("word")
        if not isinstance(word, str) or not word:
            continue
        tokens.append(TokenItem(word=word, reading=str(item.get("reading") or ""), pos=str(item.get("pos") or "")))
    return tokens


def coerce_parsed_line(item: Any, line_number: int, fallback_ja: str) -> ParsedLine:
    """Build a ParsedLine from one entry of the model's ``lines`` array.

    The original lyric text always wins over whatever the model echoed back,
    so offsets are computed against what gets stored.
    """
    if not isinstance(item, dict):
        return ParsedLine.placeholder(line_number, fallback_ja)
    content_zh = item.get("contentZh")
    spans = sanitize_furigana(fallback_ja, item.get("furigana"))
    tokens = coerce_tokens(item.get("tokens"))
    return ParsedLine(
        line_number=line_number,
        content_ja=fallback_ja,
        content_zh=content_zh if isinstance(content_zh, str) else "",
        furigana=json.dumps([s.to_dict() for s in spans], ensure_ascii=False),
        tokens=json.dumps([t.to_dict() for t in tokens], ensure_ascii=False),
    )


def coerce_generated_card(item: Any, content_ja: str = "") -> Optional[GeneratedCard]:
    """Build a GeneratedCard from one entry of the model's ``cards`` array."""
    if not isinstance(item, dict):
        return None
    word = item.get("word")
    if not isinstance(word, str) or not word.strip():
        return None

    position = None
    raw_position = item.get("wordPosition")
    if isinstance(raw_position, dict):
        try:
            start, end = int(raw_position["start"]), int(raw_position["end"])
            if 0 <= start < end <= len(content_ja):
                position = {"start": start, "end": end}
        except (KeyError, TypeError, ValueError):
            position = None
    if position is None and content_ja:
        found = content_ja.find(word)
        if found != -1:
            position = {"start": found, "end": found + len(word)}

    return GeneratedCard(
        word=word.strip(),
        reading=str(item.get("reading") or ""),
        meaning=str(item.get("meaning") or ""),
        part_of_speech=normalize_part_of_speech(item.get("partOfSpeech")),
        word_position=position,
    )
