"""Exception hierarchy for song-cards."""


class SongCardsError(Exception):
    """Base exception for all song-cards errors."""


class AIConfigurationError(SongCardsError):
    """Missing or rejected API credentials, unknown model, bad base URL."""


class AIResponseError(SongCardsError):
    """The model answered but no usable JSON could be extracted."""


class LyricsParseError(SongCardsError):
    """Single-line lyric parsing failed."""


class CardGenerationError(SongCardsError):
    """Card generation for a line failed."""
