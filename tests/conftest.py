import json
import os
from typing import Any, Callable, Generator, List, Optional, Union

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault("TEST_MODE", "1")

from llm_song_cards import db


class MockResponse:
    def __init__(self, content: str, model: str = "mock-model") -> None:
        self.content = content
        self.usage = None
        self.finish_reason = "stop"
        self.model = model

    def text(self) -> str:
        return self.content


class MockAIModel:
    """Mock AI model with the same prompt() interface as the OpenAI wrapper.

    Replies are consumed in order; an Exception instance is raised instead of
    answered. A ``handler(prompt_text, system)`` can compute replies instead.
    """

    def __init__(
        self,
        replies: Optional[List[Union[str, Exception]]] = None,
        handler: Optional[Callable[[str, str], str]] = None,
    ) -> None:
        self.replies = list(replies or [])
        self.handler = handler
        self.calls: List[tuple[str, str]] = []

    def prompt(self, prompt_text: str, system: str = "") -> Any:
        self.calls.append((system, prompt_text))
        if self.handler is not None:
            return MockResponse(self.handler(prompt_text, system))
        if not self.replies:
            raise RuntimeError("MockAIModel ran out of replies")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return MockResponse(reply)


def lines_reply(lyrics: List[str], translate: Callable[[str], str] = lambda s: f"译:{s}") -> str:
    """A well-formed batch reply for ``lyrics``."""
    return json.dumps({
        "lines": [
            {"lineNumber": i + 1, "contentJa": line, "contentZh": translate(line), "furigana": [], "tokens": []}
            for i, line in enumerate(lyrics)
        ]
    }, ensure_ascii=False)


def cards_reply(cards: List[dict]) -> str:
    return "Here are the cards:\n" + json.dumps({"cards": cards}, ensure_ascii=False)


@pytest.fixture(scope="function")
def temp_db(tmp_path: Any) -> Generator[None, None, None]:
    """Setup transient SQLite DB for testing."""
    path = tmp_path / "test.db"
    db.engine = create_engine(f"sqlite:///{path}")
    db.SessionLocal = sessionmaker(bind=db.engine, expire_on_commit=False)
    db.Base.metadata.create_all(bind=db.engine)
    yield
    db.engine.dispose()


@pytest.fixture
def song_with_lines(temp_db: Any) -> tuple[db.Song, List[db.Line]]:
    song = db.create_song("夜に駆ける", artist="YOASOBI")
    db.create_lines(song.id, [
        {"line_number": 1, "content_ja": "沈むように溶けてゆくように", "content_zh": "像是沉没 像是融化"},
        {"line_number": 2, "content_ja": "二人だけの空が広がる夜に", "content_zh": "在只属于两人的天空展开的夜晚"},
        {"line_number": 3, "content_ja": "さよならだけだった"},
    ])
    return song, db.get_lines_by_song_id(song.id)
