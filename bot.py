from __future__ import annotations

import asyncio
import logging
import sys

from miniflux_bot.adapters.telegram.telegram_bot import TelegramBot
from miniflux_bot.config import load_config
from miniflux_bot.db.session import DatabaseSessionManager
from miniflux_bot.domain.exceptions import ConfigInvalidError, UpstreamUnavailableError

logger = logging.getLogger(__name__)


async def main() -> None:
    cfg = load_config()
    db = DatabaseSessionManager(
        path=cfg.runtime.db_path,
        operation_timeout=cfg.database.operation_timeout,
        max_retries=cfg.database.max_retries,
    )
    db.migrate()

    bot = TelegramBot(cfg=cfg, db=db)
    try:
        await bot.start()
    finally:
        db.close()


def run() -> int:
    try:
        asyncio.run(main())
    except ConfigInvalidError as exc:
        logging.basicConfig(level=logging.ERROR)
        logger.error("config_invalid", extra={"error": str(exc)})
        return 1
    except UpstreamUnavailableError as exc:
        logger.error("startup_failed", extra={"error": exc.message, **exc.details})
        return 1
    except KeyboardInterrupt:  # pragma: no cover
        logger.info("shutdown")
    return 0


if __name__ == "__main__":
    sys.exit(run())
