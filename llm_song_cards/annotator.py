"""
Batch lyric annotation: furigana, translation and tokens for each line.

Lines are sent to the model in fixed-size batches, one batch at a time. A
batch that fails for any reason is replaced by placeholder lines, so the
result always has exactly one entry per input line, numbered 1..N in input
order.
"""
import json
import os
from typing import Any, Callable, List, Optional, Sequence

from . import prompts
from .exceptions import AIConfigurationError, AIResponseError, LyricsParseError
from .extraction import extract_json, extract_json_object
from .structured import (
    ParsedLine, SingleLineResult, coerce_parsed_line, coerce_tokens, sanitize_furigana,
)

DEBUG_MODE = os.getenv("DEBUG", "0") == "1"

DEFAULT_BATCH_SIZE = 8

# (system prompt, user prompt, response) hook for auditing model calls
ExchangeHook = Callable[[str, str, Any], None]


def split_batches(lyrics: Sequence[str], batch_size: int = DEFAULT_BATCH_SIZE) -> List[tuple[int, List[str]]]:
    """Split lines into ``(start_index, batch)`` pairs."""
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")
    return [(i, list(lyrics[i:i + batch_size])) for i in range(0, len(lyrics), batch_size)]


def report_exchange(on_exchange: Optional[ExchangeHook], system: str, prompt: str, response: Any) -> None:
    """Hand the exchange to the hook; a failing hook is only logged."""
    if on_exchange is None:
        return
    try:
        on_exchange(system, prompt, response)
    except Exception as e:
        print(f"⚠️ Failed to record model exchange: {e}")


def parse_lyrics_batch(
    lyrics: Sequence[str],
    start_index: int,
    model: Any,
    on_exchange: Optional[ExchangeHook] = None,
) -> List[ParsedLine]:
    """Annotate one batch. Raises when the model call fails or returns no JSON.

    A reply without a ``lines`` array counts as zero lines, so the whole
    batch comes back as placeholders.
    """
    system = prompts.lyrics_parser_system_prompt()
    prompt = prompts.create_lyrics_parser_prompt(prompts.lyric_lines_for_prompt(list(lyrics)))

    response = model.prompt(prompt, system=system)
    report_exchange(on_exchange, system, prompt, response)
    raw = response.text()
    if DEBUG_MODE:
        print(f"📥 Batch response length: {len(raw)} chars")

    items = extract_json_object(raw, "lines")
    if items is None:
        raise AIResponseError("Could not extract a lines array from the model response")

    if len(items) != len(lyrics):
        print(f"⚠️ Batch starting at line {start_index + 1}: expected {len(lyrics)} lines, got {len(items)}")

    results: List[ParsedLine] = []
    for offset, original in enumerate(lyrics):
        item = items[offset] if offset < len(items) else None
        results.append(coerce_parsed_line(item, start_index + offset + 1, original))
    return results


def parse_lyrics(
    lyrics: Sequence[str],
    model: Any,
    batch_size: int = DEFAULT_BATCH_SIZE,
    on_exchange: Optional[ExchangeHook] = None,
) -> List[ParsedLine]:
    """Annotate all lines, batch by batch, never losing or reordering a line."""
    batches = split_batches(lyrics, batch_size)
    results: List[ParsedLine] = []

    for batch_number, (start_index, batch) in enumerate(batches, 1):
        print(
            f"🎵 Processing lyrics batch {batch_number}/{len(batches)} "
            f"(lines {start_index + 1}-{start_index + len(batch)})"
        )
        try:
            results.extend(parse_lyrics_batch(batch, start_index, model, on_exchange=on_exchange))
        except Exception as e:
            print(f"❌ Lyrics batch {batch_number} failed, keeping lines unannotated: {e}")
            results.extend(
                ParsedLine.placeholder(start_index + offset + 1, line)
                for offset, line in enumerate(batch)
            )

    return results


def parse_single_line(content_ja: str, model: Any, on_exchange: Optional[ExchangeHook] = None) -> SingleLineResult:
    """Annotate one line. Unlike batches there is nothing to fall back to, so errors propagate."""
    system = prompts.LYRICS_PARSER_SYSTEM_PROMPT
    prompt = prompts.create_single_line_parser_prompt(content_ja)
    try:
        response = model.prompt(prompt, system=system)
    except AIConfigurationError:
        raise
    except Exception as e:
        print(f"❌ Single line parsing failed: {e}")
        raise LyricsParseError("Lyric line parsing failed") from e
    report_exchange(on_exchange, system, prompt, response)

    parsed = extract_json(response.text())
    if not isinstance(parsed, dict):
        raise LyricsParseError("Could not extract JSON from the model response")

    content_zh = parsed.get("contentZh")
    return SingleLineResult(
        content_zh=content_zh if isinstance(content_zh, str) else "",
        furigana=sanitize_furigana(content_ja, parsed.get("furigana")),
        tokens=coerce_tokens(parsed.get("tokens")),
    )


def furigana_for_storage(parsed: ParsedLine) -> Optional[list]:
    """Decoded spans ready for ``db.update_line``; None when there are none."""
    spans = json.loads(parsed.furigana) if parsed.furigana else []
    return spans or None
