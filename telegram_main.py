import logging

from dotenv import load_dotenv

from infrastructure.config import LedgerConfig
from infrastructure.db.factory import build_account_repository
from infrastructure.logging_config import setup_logging
from interfaces.telegram.handlers import create_telegram_bot

logger = logging.getLogger(__name__)


def main() -> None:
    load_dotenv()
    config = LedgerConfig.from_env()
    setup_logging(config.log_level, config.log_format)

    if not config.telegram_token:
        raise RuntimeError("TELEGRAM_TOKEN environment variable is not set.")

    account_repo = build_account_repository(config)

    bot = create_telegram_bot(config.telegram_token, account_repo)
    logger.info("Telegram bot polling")
    bot.infinity_polling()


if __name__ == "__main__":
    main()
