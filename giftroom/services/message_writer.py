"""AI gift message writer using Gemini."""

import asyncio
import random
from typing import Optional

import google.generativeai as genai

from giftroom.config import get_settings
from giftroom.logging import get_logger
from giftroom.models.common import GeneratedMessage

logger = get_logger(__name__)

MAX_MESSAGE_LENGTH = 280
TONES = ("funny", "romantic", "formal", "casual", "poetic", "pidgin")

FALLBACK_TEMPLATES = (
    "Happy {occasion}, {recipient}! Hope this brings a smile to your face.",
    "Thinking of you on this {occasion}, {recipient}. Enjoy!",
    "Here's a little something for you, {recipient}. Happy {occasion}!",
    "Wishing you the best {occasion} ever, {recipient}!",
)


def fallback_message(recipient_name: str, occasion: str) -> str:
    """Template message used when the model is unavailable."""
    template = random.choice(FALLBACK_TEMPLATES)
    return template.format(recipient=recipient_name, occasion=occasion)


def build_prompt(
    sender_name: str,
    recipient_name: str,
    occasion: str,
    tone: str,
    relationship: Optional[str] = None,
) -> str:
    prompt = f"""You are a creative writer helping people write short, meaningful gift messages.
Keep the message under {MAX_MESSAGE_LENGTH} characters.
Be warm, specific, and authentic.
If the tone is 'pidgin', use Nigerian Pidgin English.

Write a {tone} gift message from {sender_name} to {recipient_name} for {occasion}."""

    if relationship:
        prompt += f" They are {relationship}."

    return prompt + "\n\nReturn ONLY the message text, without quotes."


async def generate_gift_message(
    occasion: str,
    sender_name: Optional[str] = None,
    recipient_name: Optional[str] = None,
    tone: Optional[str] = None,
    relationship: Optional[str] = None,
) -> GeneratedMessage:
    """
    Write a short message to attach to a gift room.

    Falls back to a template when no API key is configured or the model
    call fails, so room creation never depends on the AI provider.
    """
    settings = get_settings()
    sender_name = sender_name or "A Friend"
    recipient_name = recipient_name or "Friend"
    tone = tone if tone in TONES else "casual"

    if not settings.gemini_api_key:
        return GeneratedMessage(
            message=fallback_message(recipient_name, occasion),
            ai_generated=False,
        )

    genai.configure(api_key=settings.gemini_api_key)
    model = genai.GenerativeModel("gemini-1.5-flash")

    try:
        response = await asyncio.wait_for(
            model.generate_content_async(
                build_prompt(sender_name, recipient_name, occasion, tone, relationship)
            ),
            timeout=settings.ai_timeout_seconds,
        )
        text = response.text.strip().strip('"').strip()
    except Exception as exc:
        logger.warning("Gift message generation failed, using template: %r", exc)
        return GeneratedMessage(
            message=fallback_message(recipient_name, occasion),
            ai_generated=False,
        )

    if not text:
        return GeneratedMessage(
            message=fallback_message(recipient_name, occasion),
            ai_generated=False,
        )

    return GeneratedMessage(message=text[:MAX_MESSAGE_LENGTH], ai_generated=True)
