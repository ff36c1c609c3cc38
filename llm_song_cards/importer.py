"""
Song import: create the song and its lines, annotate them, optionally
generate cards. Shared by the HTTP API and the CLI.
"""
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from . import db
from .annotator import furigana_for_storage
from .services import ConversationRecorder, LyricsAI
from .structured import normalize_part_of_speech

DEBUG_MODE = os.getenv("DEBUG", "0") == "1"

MIN_CARDS_PER_LINE = 1
MAX_CARDS_PER_LINE = 3


@dataclass
class ImportOptions:
    parse_with_ai: bool = True
    generate_cards: bool = False
    cards_per_line: int = 1
    record_conversations: bool = False

    def __post_init__(self) -> None:
        if not MIN_CARDS_PER_LINE <= self.cards_per_line <= MAX_CARDS_PER_LINE:
            raise ValueError(
                f"cards_per_line must be between {MIN_CARDS_PER_LINE} and {MAX_CARDS_PER_LINE}"
            )


@dataclass
class ImportResult:
    song: db.Song
    lines: List[db.Line]
    cards: List[Dict[str, Any]] = field(default_factory=list)  # [{"lineId": ..., "cards": [Card, ...]}]

    @property
    def cards_count(self) -> int:
        return sum(len(group["cards"]) for group in self.cards)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "song": self.song.to_dict(),
            "lines": [line.to_dict() for line in self.lines],
            "cards": [
                {"lineId": group["lineId"], "cards": [card.to_dict() for card in group["cards"]]}
                for group in self.cards
            ],
        }


def import_song(
    lyrics_ai: Optional[LyricsAI],
    title: str,
    lyrics: Sequence[str],
    artist: Optional[str] = None,
    timestamps: Optional[Sequence[Dict[str, Optional[int]]]] = None,
    options: Optional[ImportOptions] = None,
    user: Optional[str] = None,
    **song_fields: Any,
) -> ImportResult:
    """Import a song in order: song, raw lines, annotation, cards.

    Annotation never fails the import. Card generation runs one line at a
    time; a line whose generation fails is skipped.
    """
    options = options or ImportOptions()
    if not lyrics:
        raise ValueError("At least one lyric line is required")

    song = db.create_song(title, artist=artist, creator=user, **song_fields)
    print(f"🎵 Importing '{song.title}' ({len(lyrics)} lines)")

    line_rows = []
    for index, content_ja in enumerate(lyrics):
        stamp = timestamps[index] if timestamps and index < len(timestamps) else {}
        line_rows.append({
            "line_number": index + 1,
            "content_ja": content_ja,
            "start_time": stamp.get("start_time"),
            "end_time": stamp.get("end_time"),
        })
    db.create_lines(song.id, line_rows)
    lines = db.get_lines_by_song_id(song.id)

    if options.parse_with_ai and lyrics_ai is not None:
        recorder = _recorder(options, user, f"Lyrics: {song.title}", "lyrics_parse", song.id)
        try:
            parsed_lines = lyrics_ai.parse_lyrics(list(lyrics), on_exchange=recorder)
            for line, parsed in zip(lines, parsed_lines):
                db.update_line(
                    line.id,
                    content_zh=parsed.content_zh or None,
                    furigana=furigana_for_storage(parsed),
                    tokens=parsed.tokens,
                )
            lines = db.get_lines_by_song_id(song.id)
        except Exception as e:
            print(f"❌ AI lyric parsing failed, keeping raw lines: {e}")

    result = ImportResult(song=song, lines=lines)

    if options.generate_cards and lyrics_ai is not None:
        recorder = _recorder(options, user, f"Cards: {song.title}", "card_generate", song.id)
        for line in lines:
            try:
                generated = lyrics_ai.generate_cards(
                    line.content_ja, line.content_zh, count=options.cards_per_line, on_exchange=recorder
                )
                saved = [
                    db.create_card(
                        line.id,
                        word=card.word,
                        reading=card.reading,
                        meaning=card.meaning,
                        part_of_speech=normalize_part_of_speech(card.part_of_speech),
                        example_sentence=line.content_ja,
                        example_translation=line.content_zh,
                        word_position=card.word_position,
                    )
                    for card in generated[:options.cards_per_line]
                ]
            except Exception as e:
                print(f"❌ Card generation failed for line {line.line_number}: {e}")
                continue
            result.cards.append({"lineId": line.id, "cards": saved})

    print(f"✅ Imported '{song.title}': {len(result.lines)} lines, {result.cards_count} cards")
    return result


def _recorder(
    options: ImportOptions, user: Optional[str], title: str, purpose: str, song_id: int
) -> Optional[ConversationRecorder]:
    if not options.record_conversations or not user:
        return None
    return ConversationRecorder(user, title, purpose, song_id=song_id)
