from dotenv import load_dotenv

from infrastructure.config import LedgerConfig
from infrastructure.db.factory import build_account_repository
from infrastructure.logging_config import setup_logging
from interfaces.discord.handlers import create_discord_bot


def main() -> None:
    load_dotenv()
    config = LedgerConfig.from_env()
    setup_logging(config.log_level, config.log_format)

    if not config.discord_token:
        raise RuntimeError("DISCORD_TOKEN environment variable is not set.")

    account_repo = build_account_repository(config)

    bot = create_discord_bot(account_repo)
    # Logging is already configured above.
    bot.run(config.discord_token, log_handler=None)


if __name__ == "__main__":
    main()
