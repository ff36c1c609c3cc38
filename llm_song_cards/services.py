"""
Language-model capability used by the app and the CLI.

``LyricsAI`` is the interface; ``OpenAILyricsAI`` talks to an OpenAI-compatible
endpoint and ``mock.MockLyricsAI`` is the offline test double. Which one is
used is decided once, by ``create_lyrics_ai``.
"""
from typing import Any, Dict, List, Optional

from . import annotator, cards, db
from .ai import AIConfig, OpenAIModel, create_client, load_config
from .annotator import ExchangeHook
from .structured import GeneratedCard, ParsedLine, SingleLineResult


class LyricsAI:
    """Annotate lyrics and generate cards."""

    mock_mode = False

    def parse_lyrics(self, lyrics: List[str], on_exchange: Optional[ExchangeHook] = None) -> List[ParsedLine]:
        raise NotImplementedError

    def parse_single_line(self, content_ja: str, on_exchange: Optional[ExchangeHook] = None) -> SingleLineResult:
        raise NotImplementedError

    def generate_cards(
        self,
        content_ja: str,
        content_zh: Optional[str] = None,
        count: Optional[int] = None,
        on_exchange: Optional[ExchangeHook] = None,
    ) -> List[GeneratedCard]:
        raise NotImplementedError

    def status(self) -> Dict[str, Any]:
        return {"mockMode": self.mock_mode}


class OpenAILyricsAI(LyricsAI):
    def __init__(self, config: AIConfig, client: Any = None) -> None:
        self.config = config
        self.client = client if client is not None else create_client(config)
        self.lyrics_model = OpenAIModel(self.client, config.lyrics_parser)
        self.card_model = OpenAIModel(self.client, config.card_generation)

    def parse_lyrics(self, lyrics: List[str], on_exchange: Optional[ExchangeHook] = None) -> List[ParsedLine]:
        return annotator.parse_lyrics(
            lyrics, self.lyrics_model, batch_size=self.config.lyrics_batch_size, on_exchange=on_exchange
        )

    def parse_single_line(self, content_ja: str, on_exchange: Optional[ExchangeHook] = None) -> SingleLineResult:
        return annotator.parse_single_line(content_ja, self.lyrics_model, on_exchange=on_exchange)

    def generate_cards(
        self,
        content_ja: str,
        content_zh: Optional[str] = None,
        count: Optional[int] = None,
        on_exchange: Optional[ExchangeHook] = None,
    ) -> List[GeneratedCard]:
        return cards.generate_cards_from_line(
            content_ja, self.card_model, content_zh=content_zh, count=count, on_exchange=on_exchange
        )

    def status(self) -> Dict[str, Any]:
        return {
            "mockMode": False,
            "baseUrl": self.config.base_url,
            "lyricsModel": self.config.lyrics_parser.model,
            "cardModel": self.config.card_generation.model,
            "batchSize": self.config.lyrics_batch_size,
            "maxRetries": self.config.max_retries,
        }


def create_lyrics_ai(config: Optional[AIConfig] = None) -> LyricsAI:
    """Pick the real or the mock implementation from configuration."""
    config = config or load_config()
    if config.mock_mode:
        from .mock import MockLyricsAI

        print("🧪 AI mock mode enabled (no OPENAI_API_KEY or AI_MOCK_MODE=true)")
        return MockLyricsAI(delay=config.mock_delay)
    print(f"✅ AI initialized with lyrics model {config.lyrics_parser.model}, card model {config.card_generation.model}")
    return OpenAILyricsAI(config)


class ConversationRecorder:
    """Store model exchanges as a conversation so users can see how a song was parsed.

    The conversation is created on the first exchange.
    """

    def __init__(self, user: str, title: str, purpose: str, song_id: Optional[int] = None) -> None:
        self.user = user
        self.title = title
        self.purpose = purpose
        self.song_id = song_id
        self.conversation_id: Optional[int] = None

    def __call__(self, system: str, prompt: str, response: Any) -> None:
        model_name = getattr(response, "model", None)
        if self.conversation_id is None:
            conversation = db.start_conversation(
                self.user,
                self.title,
                system_prompt=system,
                song_id=self.song_id,
                purpose=self.purpose,
                model=model_name,
            )
            self.conversation_id = conversation.id
        usage = getattr(response, "usage", None)
        db.add_message(self.conversation_id, "user", prompt)
        db.add_message(
            self.conversation_id,
            "assistant",
            response.text(),
            tokens=getattr(usage, "total_tokens", None),
            model=model_name,
            finish_reason=getattr(response, "finish_reason", None),
        )
