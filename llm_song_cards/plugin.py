from . import db
from typing import Any, Optional

try:
    import llm  # type: ignore
    hookimpl = llm.hookimpl  # type: ignore
except ImportError:
    import pluggy
    hookimpl = pluggy.HookimplMarker("llm")

DEFAULT_USER = "default_user"

STATUS_KEYS = {"n": "new", "l": "learning", "m": "mastered"}


@hookimpl  # type: ignore[misc]
def register_commands(cli: Any) -> None:
    import click

    @cli.command("songs-init-db")  # type: ignore[misc]
    def init_db() -> None:
        """Initialize the song cards database."""
        db.init_db()
        click.echo("Database initialized.")

    @cli.command("songs-import")  # type: ignore[misc]
    @click.argument("path", type=click.Path(exists=True, dir_okay=False))
    @click.option("--title", required=True, help="Song title")
    @click.option("--artist", default=None, help="Artist name")
    @click.option("--no-ai", is_flag=True, help="Store the raw lines without annotation")
    @click.option("--generate-cards", is_flag=True, help="Generate vocabulary cards for every line")
    @click.option("--cards-per-line", type=click.IntRange(1, 3), default=1, help="Cards kept per line (1-3)")
    @click.option("--user", default=DEFAULT_USER, help="Owner of the imported song")
    def import_lyrics(
        path: str,
        title: str,
        artist: Optional[str],
        no_ai: bool,
        generate_cards: bool,
        cards_per_line: int,
        user: str,
    ) -> None:
        """Import a lyrics file (plain text, one line per lyric, or LRC)."""
        from . import lrc
        from .importer import ImportOptions, import_song
        from .services import create_lyrics_ai

        with open(path, "r", encoding="utf-8") as f:
            text = f.read()

        timestamps = None
        if lrc.is_lrc(text):
            entries = lrc.parse_lrc(text)
            lyrics = [entry.text for entry in entries]
            timestamps = [{"start_time": e.start_time, "end_time": e.end_time} for e in entries]
        else:
            lyrics = lrc.strip_timestamps(text)
        if not lyrics:
            raise click.ClickException(f"No lyric lines found in {path}")

        if not db.is_db_initialized():
            db.init_db()

        options = ImportOptions(
            parse_with_ai=not no_ai, generate_cards=generate_cards and not no_ai, cards_per_line=cards_per_line
        )
        lyrics_ai = None if no_ai else create_lyrics_ai()
        result = import_song(
            lyrics_ai, title, lyrics, artist=artist, timestamps=timestamps, options=options, user=user
        )
        click.echo(
            f"Song {result.song.id} '{result.song.title}' imported: "
            f"{len(result.lines)} lines, {result.cards_count} cards."
        )

    @cli.command("songs-list")  # type: ignore[misc]
    @click.option("--search", default=None, help="Filter by title or artist")
    @click.option("--limit", type=int, default=20)
    @click.option("--user", default=DEFAULT_USER)
    def list_songs(search: Optional[str], limit: int, user: str) -> None:
        """List songs."""
        songs, total = db.get_songs(user, search=search, limit=limit)
        if not songs:
            click.echo("No songs found.")
            return
        for song in songs:
            artist = f" - {song.artist}" if song.artist else ""
            click.echo(f"[{song.id}] {song.title}{artist}")
        if total > len(songs):
            click.echo(f"... {total - len(songs)} more")

    @cli.command("songs-cards")  # type: ignore[misc]
    @click.argument("song_id", type=int)
    @click.option("--user", default=DEFAULT_USER)
    def song_cards(song_id: int, user: str) -> None:
        """Show the cards of a song with your learning status."""
        song = db.get_song(song_id)
        if song is None:
            raise click.ClickException(f"Song {song_id} not found")
        cards = db.get_cards_by_song(song_id)
        if not cards:
            click.echo(f"'{song.title}' has no cards yet.")
            return
        progress = db.get_progress_map(user, [card.id for card in cards])
        for card in cards:
            status = progress[card.id].status if card.id in progress else "new"
            reading = f" ({card.reading})" if card.reading else ""
            click.echo(f"[{card.id}] {card.word}{reading} [{card.part_of_speech}] {card.meaning}  <{status}>")

    @cli.command("songs-study")  # type: ignore[misc]
    @click.option("--song-id", type=int, default=None, help="Only study cards of this song")
    @click.option("--limit", type=click.IntRange(min=1), default=None, help="Maximum cards in this session")
    @click.option("--store", type=click.Path(dir_okay=False), default=None,
                  help="Keep learning state in this JSON file instead of the database")
    @click.option("--user", default=DEFAULT_USER)
    def study(song_id: Optional[int], limit: Optional[int], store: Optional[str], user: str) -> None:
        """Study cards: mark each one new, learning or mastered."""
        from .study import DatabaseProgressStore, JSONFileProgressStore, LearningStateTracker, StudySession

        if song_id is not None:
            cards = db.get_cards_by_song(song_id)
        else:
            cards, _ = db.get_cards(user=user, limit=500)
        if not cards:
            click.echo("No cards to study.")
            return

        progress_store = JSONFileProgressStore(store) if store else DatabaseProgressStore()
        tracker = LearningStateTracker(user, progress_store)
        session = StudySession(tracker, [card.id for card in cards], limit=limit)
        by_id = {card.id: card for card in cards}

        while not session.is_complete:
            card = by_id[session.current()]  # type: ignore[index]
            state = tracker.get(card.id)
            click.echo("")
            click.echo(f"{card.word}   <{state.status}, reviewed {state.review_count}x>")
            if card.example_sentence:
                click.echo(f"  {card.example_sentence}")
            click.prompt("Press enter to reveal", default="", show_default=False)
            reading = f" ({card.reading})" if card.reading else ""
            click.echo(f"  {card.word}{reading}: {card.meaning}")

            choice = click.prompt(
                "[n]ew / [l]earning / [m]astered / [s]kip / [q]uit",
                type=click.Choice(["n", "l", "m", "s", "q"]),
                show_choices=False,
            )
            if choice == "q":
                break
            if choice == "s":
                session.skip()
                continue
            session.mark_current(STATUS_KEYS[choice])

        summary = session.summary()
        click.echo("")
        click.echo(
            f"📊 Reviewed {summary['reviewed']}/{summary['total']}: "
            f"{summary['new']} new, {summary['learning']} learning, {summary['mastered']} mastered"
        )

    @cli.command("songs-stats")  # type: ignore[misc]
    @click.option("--user", default=DEFAULT_USER)
    def stats(user: str) -> None:
        """Show how many cards you are learning and have mastered."""
        card_stats = db.get_card_stats(user)
        click.echo(f"Tracked cards: {card_stats['total']}")
        click.echo(f"  new:      {card_stats['new']}")
        click.echo(f"  learning: {card_stats['learning']}")
        click.echo(f"  mastered: {card_stats['mastered']}")
