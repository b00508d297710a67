"""Onboarding prompts: welcome, terms notice, accept button, acceptance confirmation."""

from __future__ import annotations

from coralbot.turns import Turn, system_turn, user_turn

TERMS_URL = "https://cohere.com/terms-of-use"
PRIVACY_URL = "https://cohere.com/privacy"
ACCEPT_TERMS_CALLBACK = "accept_terms"
BUTTON_LABEL_MAX_LEN = 40

FALLBACK_WELCOME = "Welcome! I'm Coral, your AI assistant. Send me a message any time to start chatting."
FALLBACK_TERMS = (
    f"Please review the [Terms of Use]({TERMS_URL}) and [Privacy Policy]({PRIVACY_URL}) "
    "before chatting. Accepting them lets us process your messages to generate replies."
)
FALLBACK_BUTTON = "Accept"
FALLBACK_SUCCESS = (
    "Thank you, your acceptance of the terms has been saved.\n\n"
    "You can now chat with Coral by sending any message."
)


def _language(locale: str | None) -> str:
    return locale or "an unrecognized language"


def welcome_prompt(locale: str | None) -> list[Turn]:
    return [
        system_turn(
            "You are Cohere's Coral, a friendly and helpful AI assistant. Your task is to generate "
            f"a warm, engaging welcome message in {_language(locale)}. The message should be concise "
            "(2-3 sentences max) and make the user feel welcomed. If the language code is not "
            "recognized, respond in English only."
        ),
        user_turn(
            "Write a friendly welcome message for a new user who just started using our Telegram bot. "
            "Make it warm and inviting."
        ),
    ]


def terms_prompt(locale: str | None) -> list[Turn]:
    return [
        system_turn(
            f"Create a terms acceptance message in {_language(locale)}. The message must:\n"
            f"1. State the requirement to review [Terms of Use]({TERMS_URL}) and "
            f"[Privacy Policy]({PRIVACY_URL}) using Markdown links\n"
            "2. Briefly explain the purpose of accepting these documents\n"
            "3. Be concise - maximum 2-3 sentences\n"
            "4. Avoid greetings, thanks, or farewell phrases\n"
            "If the language is not recognized, respond in English only."
        ),
        user_turn(
            "Create a straightforward message about terms acceptance. "
            "Focus only on the documents and their importance."
        ),
    ]


def button_prompt(locale: str | None) -> list[Turn]:
    return [
        system_turn(
            f"Generate a single, clear call-to-action button text in {_language(locale)} for accepting "
            "terms of use. The text should:\n"
            "1. Be very short (1-3 words maximum)\n"
            "2. Be action-oriented\n"
            "3. Clearly indicate acceptance/agreement\n"
            "4. Have no surrounding quotes or formatting\n"
            "If the language is not recognized, respond in English only."
        ),
        user_turn(
            "Generate a short, clear button text for accepting terms and conditions without any "
            "surrounding quotes or formatting. Make it concise and action-oriented."
        ),
    ]


def success_prompt(locale: str | None) -> list[Turn]:
    return [
        system_turn(
            f"Generate a success message in {_language(locale)} for accepting terms of use. "
            "The message should:\n"
            "1. Confirm successful acceptance of terms\n"
            "2. Thank the user for joining\n"
            "3. Clearly explain that they can now start chatting with Cohere's Coral AI by sending any message\n"
            "4. Format the message in two paragraphs for better readability\n"
            "If the language is not recognized, respond in English only."
        ),
        user_turn(
            "Generate a message confirming successful acceptance of terms and explaining next steps"
        ),
    ]


def clean_button_label(text: str) -> str:
    """Strip quotes and markup the model adds despite instructions; fall back when nothing usable remains."""
    label = text.strip().splitlines()[0] if text.strip() else ""
    label = label.strip(" \t\"'`*_«»“”„‘’").strip()
    if not label:
        return FALLBACK_BUTTON
    return label[:BUTTON_LABEL_MAX_LEN]
