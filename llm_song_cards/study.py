"""
Learning state per (user, card) and study sessions.

Each card is ``new``, ``learning`` or ``mastered``. Users move cards between
any two states by hand while studying; every mark counts as a review. There
is no scheduling: sessions just put cards that are not mastered yet first.
"""
from __future__ import annotations

import datetime
import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from . import db
from .structured import CARD_STATUSES

DEBUG_MODE = os.getenv("DEBUG", "0") == "1"

# new and learning cards come before mastered ones
STUDY_PRIORITY = {"new": 0, "learning": 0, "mastered": 1}


@dataclass
class CardState:
    card_id: int
    status: str = "new"
    review_count: int = 0
    last_reviewed_at: Optional[datetime.datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cardId": self.card_id,
            "status": self.status,
            "reviewCount": self.review_count,
            "lastReviewedAt": self.last_reviewed_at.isoformat() if self.last_reviewed_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CardState":
        reviewed = data.get("lastReviewedAt")
        return cls(
            card_id=int(data["cardId"]),
            status=data.get("status", "new"),
            review_count=int(data.get("reviewCount", 0)),
            last_reviewed_at=datetime.datetime.fromisoformat(reviewed) if reviewed else None,
        )


def apply_mark(state: CardState, status: str, now: Optional[datetime.datetime] = None) -> CardState:
    """The single transition rule: any status to any status, counting a review."""
    if status not in CARD_STATUSES:
        raise ValueError(f"Unknown card status: {status}")
    return CardState(
        card_id=state.card_id,
        status=status,
        review_count=state.review_count + 1,
        last_reviewed_at=now or datetime.datetime.now(datetime.UTC),
    )


class ProgressStore:
    """Where learning state lives between sessions."""

    def load(self, user: str, card_ids: Iterable[int]) -> Dict[int, CardState]:
        raise NotImplementedError

    def mark(self, user: str, card_id: int, status: str) -> CardState:
        raise NotImplementedError


class MemoryProgressStore(ProgressStore):
    def __init__(self) -> None:
        self.states: Dict[str, Dict[int, CardState]] = {}

    def load(self, user: str, card_ids: Iterable[int]) -> Dict[int, CardState]:
        saved = self.states.get(user, {})
        return {cid: saved[cid] for cid in card_ids if cid in saved}

    def mark(self, user: str, card_id: int, status: str) -> CardState:
        user_states = self.states.setdefault(user, {})
        state = apply_mark(user_states.get(card_id, CardState(card_id)), status)
        user_states[card_id] = state
        return state


class JSONFileProgressStore(ProgressStore):
    """Local key-value store: one JSON file mapping user -> card id -> state."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def _read(self) -> Dict[str, Dict[str, Any]]:
        if not self.path.exists():
            return {}
        with self.path.open("r", encoding="utf-8") as f:
            return json.load(f)

    def _write(self, data: Dict[str, Dict[str, Any]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        tmp.replace(self.path)

    def load(self, user: str, card_ids: Iterable[int]) -> Dict[int, CardState]:
        saved = self._read().get(user, {})
        return {cid: CardState.from_dict(saved[str(cid)]) for cid in card_ids if str(cid) in saved}

    def mark(self, user: str, card_id: int, status: str) -> CardState:
        data = self._read()
        user_states = data.setdefault(user, {})
        previous = user_states.get(str(card_id))
        state = apply_mark(CardState.from_dict(previous) if previous else CardState(card_id), status)
        user_states[str(card_id)] = state.to_dict()
        self._write(data)
        return state


class DatabaseProgressStore(ProgressStore):
    """Learning state kept in the ``card_progress`` table."""

    def load(self, user: str, card_ids: Iterable[int]) -> Dict[int, CardState]:
        rows = db.get_progress_map(user, list(card_ids))
        return {
            cid: CardState(cid, row.status, row.review_count, row.last_reviewed_at)
            for cid, row in rows.items()
        }

    def mark(self, user: str, card_id: int, status: str) -> CardState:
        row = db.update_card_status(user, card_id, status)
        return CardState(card_id, row.status, row.review_count, row.last_reviewed_at)


class LearningStateTracker:
    """Learning state of one user's cards, backed by a ``ProgressStore``."""

    def __init__(self, user: str, store: Optional[ProgressStore] = None) -> None:
        self.user = user
        self.store = store if store is not None else MemoryProgressStore()
        self._cache: Dict[int, CardState] = {}

    def load(self, card_ids: Iterable[int]) -> None:
        ids = list(card_ids)
        found = self.store.load(self.user, ids)
        for card_id in ids:
            self._cache[card_id] = found.get(card_id, CardState(card_id))

    def get(self, card_id: int) -> CardState:
        if card_id not in self._cache:
            self.load([card_id])
        return self._cache.get(card_id, CardState(card_id))

    def mark(self, card_id: int, status: str) -> CardState:
        state = self.store.mark(self.user, card_id, status)
        self._cache[card_id] = state
        if DEBUG_MODE:
            print(f"📝 {self.user}: card {card_id} → {status} (reviews: {state.review_count})")
        return state

    def counts(self, card_ids: Iterable[int]) -> Dict[str, int]:
        counts = {status: 0 for status in CARD_STATUSES}
        for card_id in card_ids:
            counts[self.get(card_id).status] += 1
        return counts


def order_for_study(card_ids: Iterable[int], tracker: LearningStateTracker) -> List[int]:
    """New and learning cards first, mastered last; otherwise keep the given order."""
    ids = list(card_ids)
    tracker.load(ids)
    return sorted(ids, key=lambda cid: STUDY_PRIORITY[tracker.get(cid).status])


class StudySession:
    """One pass over a set of cards."""

    def __init__(
        self,
        tracker: LearningStateTracker,
        card_ids: Iterable[int],
        limit: Optional[int] = None,
        ordered: bool = False,
    ) -> None:
        if limit is not None and limit < 1:
            raise ValueError("Session limit must be at least 1")
        self.tracker = tracker
        ids = list(card_ids) if ordered else order_for_study(card_ids, tracker)
        self.card_ids: List[int] = ids[:limit] if limit is not None else ids
        self.position = 0
        self.marked: Dict[int, str] = {}

    @property
    def is_complete(self) -> bool:
        return self.position >= len(self.card_ids)

    def current(self) -> Optional[int]:
        return None if self.is_complete else self.card_ids[self.position]

    def mark(self, card_id: int, status: str) -> CardState:
        """Mark a card of this session; marking the current card moves on."""
        if card_id not in self.card_ids:
            raise ValueError(f"Card {card_id} is not part of this study session")
        state = self.tracker.mark(card_id, status)
        self.marked[card_id] = status
        if card_id == self.current():
            self.position += 1
        return state

    def mark_current(self, status: str) -> CardState:
        card_id = self.current()
        if card_id is None:
            raise ValueError("Study session is already complete")
        return self.mark(card_id, status)

    def skip(self) -> None:
        if not self.is_complete:
            self.position += 1

    def summary(self) -> Dict[str, int]:
        """Counts of each card's status as it stands now, plus totals."""
        counts = self.tracker.counts(self.card_ids)
        return {
            "total": len(self.card_ids),
            "reviewed": len(self.marked),
            **counts,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {"cardIds": self.card_ids, "position": self.position, "marked": {str(k): v for k, v in self.marked.items()}}

    @classmethod
    def from_dict(cls, tracker: LearningStateTracker, data: Dict[str, Any]) -> "StudySession":
        session = cls(tracker, data["cardIds"], ordered=True)
        session.position = int(data.get("position", 0))
        session.marked = {int(k): v for k, v in data.get("marked", {}).items()}
        return session
