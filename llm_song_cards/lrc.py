"""LRC lyric files: ``[mm:ss.xx]`` timestamps in front of each lyric line."""
import re
from dataclasses import dataclass
from typing import List, Optional

_TIMESTAMP = re.compile(r"\[(\d{1,3}):(\d{1,2})(?:[.:](\d{1,3}))?\]")
_TAG = re.compile(r"^\[[a-zA-Z]+:.*\]$")


@dataclass
class LrcLine:
    text: str
    start_time: int  # ms
    end_time: int  # ms


def _to_ms(minutes: str, seconds: str, fraction: Optional[str]) -> int:
    ms = (int(minutes) * 60 + int(seconds)) * 1000
    if fraction:
        # .5 → 500ms, .05 → 50ms, .005 → 5ms
        ms += int(fraction.ljust(3, "0")[:3])
    return ms


def is_lrc(text: str) -> bool:
    return any(_TIMESTAMP.match(line.strip()) for line in text.splitlines())


def parse_lrc(text: str, duration_ms: Optional[int] = None) -> List[LrcLine]:
    """Parse LRC text into lines ordered by start time.

    A line carrying several timestamps (a repeated chorus) yields one entry
    per timestamp. Each entry ends where the next one starts; the last one
    ends at ``duration_ms`` when given, else at its own start. Metadata tags
    such as ``[ar:...]`` and empty lyric lines are skipped.
    """
    entries: List[tuple[int, str]] = []
    for raw in text.splitlines():
        line = raw.strip()
        if not line or _TAG.match(line):
            continue
        stamps = []
        while True:
            match = _TIMESTAMP.match(line)
            if not match:
                break
            stamps.append(_to_ms(*match.groups()))
            line = line[match.end():].lstrip()
        if not stamps or not line:
            continue
        entries.extend((stamp, line) for stamp in stamps)

    entries.sort(key=lambda e: e[0])
    result: List[LrcLine] = []
    for i, (start, lyric) in enumerate(entries):
        if i + 1 < len(entries):
            end = entries[i + 1][0]
        elif duration_ms is not None and duration_ms >= start:
            end = duration_ms
        else:
            end = start
        result.append(LrcLine(text=lyric, start_time=start, end_time=end))
    return result


def strip_timestamps(text: str) -> List[str]:
    """Plain lyric lines, with any leading ``[...]`` blocks removed."""
    out: List[str] = []
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        while line.startswith("[") and "]" in line:
            line = line.split("]", 1)[1].lstrip()
        if line:
            out.append(line)
    return out
