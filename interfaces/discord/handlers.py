from __future__ import annotations

import logging

import discord
from discord.ext import commands

from domain.repositories import AccountRepository
from interfaces.commands import (
    COMMANDS,
    PRIVATE_COMMANDS,
    PRIVATE_ONLY_TEXT,
    dispatch,
)

logger = logging.getLogger(__name__)


def create_discord_bot(account_repo: AccountRepository) -> commands.Bot:
    """
    Configure and return a Discord bot exposing the same commands as the
    Telegram interface, using the `!` prefix.
    """

    intents = discord.Intents.default()
    intents.message_content = True

    # Disable the default help command so we can provide our own `!help`.
    bot = commands.Bot(command_prefix="!", intents=intents, help_command=None)

    @bot.event
    async def on_ready():
        logger.info("Discord bot logged in as %s (id=%s)", bot.user, bot.user.id)

    @bot.command(name="help", aliases=["start"])
    async def help_cmd(ctx: commands.Context):
        await ctx.send(dispatch("help", [], account_repo))

    def register(name: str) -> None:
        async def ledger_cmd(ctx: commands.Context, *args: str):
            # The PIN is shown only once; refuse before anything is created.
            if name in PRIVATE_COMMANDS and ctx.guild is not None:
                await ctx.send(PRIVATE_ONLY_TEXT)
                return

            await ctx.send(dispatch(name, list(args), account_repo))

        bot.command(name=name)(ledger_cmd)

    for name in COMMANDS:
        register(name)

    return bot
