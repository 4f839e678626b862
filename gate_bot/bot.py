import asyncio
import logging

from aiogram import Bot, Dispatcher
from aiogram.client.session.aiohttp import AiohttpSession

# ВАЖНО: сначала загружаем конфиг (.env), потом всё остальное
from gate_bot.config import (
    BOT_TOKEN,
    CAPTCHA_LENGTH,
    CAPTCHA_TTL_SECONDS,
    DATABASE_AUTH_TOKEN,
    DATABASE_URL,
    LOG_CHANNEL_ID,
    LOG_LEVEL,
    USE_WEBHOOK,
)
from gate_bot.database.session import create_store, init_db
from gate_bot.middleware.db_session import DbSessionMiddleware
from gate_bot.middleware.structured_logging import StructuredLoggingMiddleware
from gate_bot.handlers import handlers_router
from gate_bot.services.captcha import (
    CaptchaIssuer,
    CaptchaSessionStore,
    CaptchaVerifier,
    PendingSessionRegistry,
    ensure_renderer_available,
)
from gate_bot.services.gate_service import MessageGate
from gate_bot.utils.journal import ChannelJournal


def setup_logging(level: str = LOG_LEVEL) -> logging.Logger:
    """Настройка корневого логгера: консоль + тишина от aiogram по апдейтам."""
    logger = logging.getLogger()
    logger.setLevel(level)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))
    logger.addHandler(console_handler)

    # Отключаем встроенное логирование aiogram для апдейтов - его заменяет StructuredLoggingMiddleware
    for logger_name in ("aiogram.dispatcher", "aiogram.event"):
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    return logger


def build_dispatcher(sessionmaker, journal: ChannelJournal = None) -> Dispatcher:
    """
    Собирает диспетчер и компоненты капчи.

    Компоненты создаются один раз и попадают в хендлеры через
    workflow data диспетчера (аргументы issuer, verifier, gate, ...).
    """
    store = CaptchaSessionStore(sessionmaker, logger=logging.getLogger("gate_bot.captcha.store"))
    issuer = CaptchaIssuer(
        store,
        ttl_seconds=CAPTCHA_TTL_SECONDS,
        captcha_length=CAPTCHA_LENGTH,
        logger=logging.getLogger("gate_bot.captcha.issuer"),
    )
    verifier = CaptchaVerifier(store, logger=logging.getLogger("gate_bot.captcha.verifier"))
    gate = MessageGate(journal=journal, logger=logging.getLogger("gate_bot.gate"))

    dp = Dispatcher(
        issuer=issuer,
        verifier=verifier,
        gate=gate,
        journal=journal,
        pending_sessions=PendingSessionRegistry(logger=logging.getLogger("gate_bot.captcha.pending")),
    )

    # middleware выполняются в порядке регистрации: сначала лог апдейта, потом сессия БД
    dp.update.middleware(StructuredLoggingMiddleware())
    dp.update.middleware(DbSessionMiddleware(sessionmaker))

    dp.include_router(handlers_router)
    return dp


# главная асинхронная функция, запускающая бота
async def main():
    setup_logging()

    # Без рендера капчи бот бесполезен - падаем сразу
    ensure_renderer_available()

    engine, sessionmaker = create_store(DATABASE_URL, DATABASE_AUTH_TOKEN)
    await init_db(engine)

    session = AiohttpSession(timeout=60.0)
    bot = Bot(token=BOT_TOKEN, session=session)

    journal = ChannelJournal(bot, LOG_CHANNEL_ID)
    dp = build_dispatcher(sessionmaker, journal=journal)

    logging.info("🤖 Бот успешно запущен и готов к работе.")

    try:
        if USE_WEBHOOK:
            logging.info("🌐 Запуск в режиме webhook...")
            from gate_bot.webhook import run_webhook
            await run_webhook(bot=bot, dp=dp)
        else:
            logging.info("🔄 Запуск в режиме polling...")
            # Удаление вебхука перед запуском поллинга
            await bot.delete_webhook(drop_pending_updates=True)
            await dp.start_polling(bot)
    finally:
        await bot.session.close()
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
