from __future__ import annotations

from typing import Dict

import telebot
from telebot.types import InlineKeyboardButton, InlineKeyboardMarkup

from application.flow import FlowResult, OnboardingFlow
from bootstrap import FlowFactory
from domain.models import CreditScore, SessionPreferences, Stage
from interfaces.telegram.callback_data import (
    CREDIT_PREFIX,
    encode_credit_choice,
    parse_credit_choice,
)


CREDIT_LABELS = {
    CreditScore.BAD: "Bad",
    CreditScore.AVERAGE: "Average",
    CreditScore.GOOD: "Good",
}


def _credit_markup() -> InlineKeyboardMarkup:
    markup = InlineKeyboardMarkup(row_width=3)
    markup.add(
        *[
            InlineKeyboardButton(label, callback_data=encode_credit_choice(score))
            for score, label in CREDIT_LABELS.items()
        ]
    )
    return markup


def create_telegram_bot(
    bot_token: str,
    flow_factory: FlowFactory,
    complete_scene: str = "City",
) -> telebot.TeleBot:
    """
    Configure and return a TeleBot instance that walks each chat through
    onboarding.

    This module contains only Telegram-specific concerns: plain text is fed
    to whichever stage the chat's flow is in, and credit choices arrive as
    inline-button callbacks.
    """

    bot = telebot.TeleBot(bot_token)

    # One flow per chat, keyed by chat ID.
    flows: Dict[int, OnboardingFlow] = {}

    def _start_flow(chat_id: int) -> OnboardingFlow:
        def on_complete(preferences: SessionPreferences) -> None:
            bot.send_message(
                chat_id,
                f"Welcome, {preferences.email}! Loading {complete_scene}...",
            )

        flow = flow_factory(on_complete)
        flows[chat_id] = flow
        return flow

    def _prompt(chat_id: int, flow: OnboardingFlow) -> None:
        stage = flow.stage
        if stage is Stage.EMAIL_ENTRY:
            bot.send_message(chat_id, "Please enter your email address.")
        elif stage is Stage.OTP_ENTRY:
            bot.send_message(
                chat_id, "We sent a code to your email. Please enter it here."
            )
        elif stage is Stage.CREDIT_SELECT:
            bot.send_message(
                chat_id,
                "Choose your credit score.",
                reply_markup=_credit_markup(),
            )

    def _report(chat_id: int, flow: OnboardingFlow, result: FlowResult) -> None:
        if not result.success:
            bot.send_message(chat_id, result.error_message)
            return
        _prompt(chat_id, flow)

    @bot.message_handler(commands=["start", "restart"])
    def handle_start(message):
        flow = _start_flow(message.chat.id)
        bot.send_message(message.chat.id, "Welcome!")
        _prompt(message.chat.id, flow)

    @bot.message_handler(commands=["help"])
    def handle_help(message):
        bot.send_message(
            message.chat.id,
            "/start    - begin onboarding\n"
            "/restart  - start over with a different email\n"
            "Then send your email address, followed by the code you receive.",
        )

    @bot.message_handler(content_types=["text"])
    def handle_text(message):
        chat_id = message.chat.id
        flow = flows.get(chat_id) or _start_flow(chat_id)
        text = message.text or ""

        if flow.stage is Stage.EMAIL_ENTRY:
            result = flow.submit_email(text)
        elif flow.stage is Stage.OTP_ENTRY:
            result = flow.verify_code(text)
        elif flow.stage is Stage.CREDIT_SELECT:
            result = flow.select_credit_score(text)
        else:
            bot.send_message(chat_id, "You are all set. Use /restart to start over.")
            return

        _report(chat_id, flow, result)

    @bot.callback_query_handler(
        func=lambda call: call.data.startswith(f"{CREDIT_PREFIX}:")
    )
    def handle_credit_choice(call):
        try:
            credit_score = parse_credit_choice(call.data)
        except ValueError:
            bot.answer_callback_query(call.id, "Invalid selection.")
            return

        chat_id = call.message.chat.id
        flow = flows.get(chat_id)
        if flow is None:
            bot.answer_callback_query(call.id, "Please use /start first.")
            return

        result = flow.select_credit_score(credit_score)
        bot.answer_callback_query(call.id)
        if result.success:
            bot.delete_message(chat_id, call.message.id)
        _report(chat_id, flow, result)

    return bot
