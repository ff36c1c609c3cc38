"""
Offline stand-in for the language model, used for local development and
tests when no API key is configured.
"""
import random
import time
from typing import Any, Dict, List, Optional

from .annotator import ExchangeHook
from .services import LyricsAI
from .structured import GeneratedCard, ParsedLine, SingleLineResult

MOCK_WORDS: List[Dict[str, str]] = [
    {"word": "夢", "reading": "ゆめ", "meaning": "梦，梦想", "partOfSpeech": "noun"},
    {"word": "渚", "reading": "なぎさ", "meaning": "海滩，水边", "partOfSpeech": "noun"},
    {"word": "花火", "reading": "はなび", "meaning": "烟花，焰火", "partOfSpeech": "noun"},
    {"word": "夜", "reading": "よる", "meaning": "夜晚", "partOfSpeech": "noun"},
    {"word": "君", "reading": "きみ", "meaning": "你（亲密称呼）", "partOfSpeech": "noun"},
    {"word": "愛", "reading": "あい", "meaning": "爱", "partOfSpeech": "noun"},
    {"word": "心", "reading": "こころ", "meaning": "心", "partOfSpeech": "noun"},
    {"word": "空", "reading": "そら", "meaning": "天空", "partOfSpeech": "noun"},
    {"word": "見る", "reading": "みる", "meaning": "看", "partOfSpeech": "verb"},
    {"word": "走る", "reading": "はしる", "meaning": "跑", "partOfSpeech": "verb"},
]


class MockLyricsAI(LyricsAI):
    """Picks words from a fixed list after a short synthetic delay."""

    mock_mode = True

    def __init__(self, delay: float = 0.5, seed: Optional[int] = None) -> None:
        self.delay = delay
        self.rng = random.Random(seed)

    def _sleep(self) -> None:
        if self.delay > 0:
            time.sleep(self.rng.uniform(self.delay, self.delay * 3))

    def parse_lyrics(self, lyrics: List[str], on_exchange: Optional[ExchangeHook] = None) -> List[ParsedLine]:
        self._sleep()
        return [
            ParsedLine(line_number=i + 1, content_ja=line, content_zh=f"（翻译第 {i + 1} 行）")
            for i, line in enumerate(lyrics)
        ]

    def parse_single_line(self, content_ja: str, on_exchange: Optional[ExchangeHook] = None) -> SingleLineResult:
        self._sleep()
        return SingleLineResult(content_zh=f"（{content_ja} 的翻译）")

    def generate_cards(
        self,
        content_ja: str,
        content_zh: Optional[str] = None,
        count: Optional[int] = None,
        on_exchange: Optional[ExchangeHook] = None,
    ) -> List[GeneratedCard]:
        self._sleep()
        # Prefer a vocabulary word that actually occurs in the line
        present = [w for w in MOCK_WORDS if w["word"] in content_ja]
        entry = present[0] if present else self.rng.choice(MOCK_WORDS)
        position = None
        found = content_ja.find(entry["word"])
        if found != -1:
            position = {"start": found, "end": found + len(entry["word"])}
        return [
            GeneratedCard(
                word=entry["word"],
                reading=entry["reading"],
                meaning=entry["meaning"],
                part_of_speech=entry["partOfSpeech"],
                word_position=position,
            )
        ]

    def status(self) -> Dict[str, Any]:
        return {"mockMode": True, "delay": self.delay}
