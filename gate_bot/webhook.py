"""
Webhook режим для Telegram бота
"""
import asyncio
import logging

from aiohttp import web
from aiogram import Bot, Dispatcher
from aiogram.exceptions import TelegramRetryAfter
from aiogram.webhook.aiohttp_server import SimpleRequestHandler, setup_application

from gate_bot.config import WEBHOOK_URL, WEBHOOK_PATH, WEBHOOK_PORT

logger = logging.getLogger(__name__)

ALLOWED_UPDATES = ["message", "callback_query"]


async def health_check(request: web.Request) -> web.Response:
    return web.json_response({"status": "ok", "service": "captcha_gate_bot"})


def create_app(bot: Bot, dp: Dispatcher) -> web.Application:
    """Создание веб-приложения: обработчик апдейтов + health check"""
    app = web.Application()

    webhook_requests_handler = SimpleRequestHandler(dispatcher=dp, bot=bot)
    webhook_requests_handler.register(app, path=WEBHOOK_PATH)
    setup_application(app, dp, bot=bot)

    app.router.add_get("/health", health_check)
    return app


async def setup_webhook(bot: Bot, max_attempts: int = 5) -> None:
    """Установка webhook с повтором при flood control"""
    if not WEBHOOK_URL:
        logger.error("❌ WEBHOOK_URL не установлен в конфигурации! Проверьте .env файл.")
        raise ValueError("WEBHOOK_URL не установлен")

    for attempt in range(1, max_attempts + 1):
        try:
            await bot.delete_webhook(drop_pending_updates=True)
            await bot.set_webhook(
                url=WEBHOOK_URL,
                drop_pending_updates=True,
                allowed_updates=ALLOWED_UPDATES,
            )
            webhook_info = await bot.get_webhook_info()
            if webhook_info.url == WEBHOOK_URL:
                logger.info(f"✅ Webhook успешно установлен и проверен: {WEBHOOK_URL}")
            else:
                logger.warning(f"⚠️ Webhook установлен, но URL не совпадает: {webhook_info.url}")
            return
        except TelegramRetryAfter as e:
            wait_seconds = max(int(e.retry_after), 1)
            logger.warning(
                f"⚠️ Попытка {attempt}/{max_attempts} - Telegram вернул Flood control на set_webhook. "
                f"Повтор через {wait_seconds} сек."
            )
            if attempt == max_attempts:
                raise
            await asyncio.sleep(wait_seconds)


async def run_webhook(bot: Bot, dp: Dispatcher) -> None:
    """Запуск webhook сервера (SSL терминируется на прокси)"""
    await setup_webhook(bot)
    app = create_app(bot, dp)

    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host="0.0.0.0", port=WEBHOOK_PORT)
    await site.start()
    logger.info(f"🚀 Webhook сервер запущен на порту {WEBHOOK_PORT}")

    try:
        await asyncio.Event().wait()
    finally:
        await runner.cleanup()
