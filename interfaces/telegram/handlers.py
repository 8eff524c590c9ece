from __future__ import annotations

import telebot

from domain.repositories import AccountRepository
from interfaces.commands import (
    COMMANDS,
    PRIVATE_COMMANDS,
    PRIVATE_ONLY_TEXT,
    dispatch,
    split_command,
)


def create_telegram_bot(
    bot_token: str,
    account_repo: AccountRepository,
) -> telebot.TeleBot:
    """
    Configure and return a TeleBot instance wired to the ledger commands.

    This module contains only Telegram-specific concerns: reading the
    command text from a message and sending the reply back.
    """

    bot = telebot.TeleBot(bot_token)

    @bot.message_handler(commands=["start", "help"])
    def handle_help(message):
        bot.send_message(
            message.chat.id,
            "Welcome to the bank bot!\n"
            "Commands (prefix each with /):\n\n"
            + dispatch("help", [], account_repo),
        )

    @bot.message_handler(commands=list(COMMANDS))
    def handle_command(message):
        command, args = split_command(message.text or "", "/")

        # The PIN is shown only once; refuse before anything is created.
        if command in PRIVATE_COMMANDS and message.chat.type != "private":
            bot.send_message(message.chat.id, PRIVATE_ONLY_TEXT)
            return

        bot.send_message(message.chat.id, dispatch(command, args, account_repo))

    return bot
