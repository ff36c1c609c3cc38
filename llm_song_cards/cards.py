"""
Vocabulary card generation from a single annotated lyric line.
"""
import os
from typing import Any, List, Optional

from . import prompts
from .exceptions import AIConfigurationError, CardGenerationError
from .extraction import extract_json_object
from .structured import GeneratedCard, coerce_generated_card
from .annotator import ExchangeHook, report_exchange

DEBUG_MODE = os.getenv("DEBUG", "0") == "1"

MIN_CARDS = 1
MAX_CARDS = 5
DEFAULT_CARDS_PER_LINE = 3


def clamp_count(count: Optional[int]) -> int:
    if count is None:
        return DEFAULT_CARDS_PER_LINE
    return max(MIN_CARDS, min(MAX_CARDS, int(count)))


def generate_cards_from_line(
    content_ja: str,
    model: Any,
    content_zh: Optional[str] = None,
    count: Optional[int] = None,
    on_exchange: Optional[ExchangeHook] = None,
) -> List[GeneratedCard]:
    """Ask the model for vocabulary entries found in one line.

    Returns at most ``count`` cards (clamped to 1..5), in the order the model
    gave them. Any failure raises: a single call has nothing to degrade into.
    """
    if model is None:
        raise AIConfigurationError("AI model is required for card generation.")
    limit = clamp_count(count)

    system = prompts.card_generation_system_prompt()
    prompt = prompts.create_card_generation_prompt(content_ja, content_zh, count=min(limit, 3))

    if DEBUG_MODE:
        print(f"🃏 Card generation for: {content_ja}")

    try:
        response = model.prompt(prompt, system=system)
    except AIConfigurationError:
        raise
    except Exception as e:
        print(f"❌ Card generation failed: {e}")
        raise CardGenerationError("Card generation failed, please try again later") from e
    report_exchange(on_exchange, system, prompt, response)

    items = extract_json_object(response.text(), "cards")
    if items is None:
        raise CardGenerationError("Could not parse the model response")

    cards: List[GeneratedCard] = []
    for item in items:
        card = coerce_generated_card(item, content_ja)
        if card is None:
            if DEBUG_MODE:
                print(f"⚠️ Skipping malformed card entry: {item!r}")
            continue
        cards.append(card)

    if DEBUG_MODE:
        print(f"✅ Model returned {len(cards)} cards, keeping {min(len(cards), limit)}")
    return cards[:limit]
