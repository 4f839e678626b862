import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from types import SimpleNamespace
from typing import Callable
from unittest.mock import AsyncMock

import pytest

# КРИТИЧНО: обязательные переменные окружения ДО импорта gate_bot.config
os.environ.setdefault("BOT_TOKEN", "123456:TEST_TOKEN_FOR_UNIT_TESTS")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

# Гарантируем, что пакет gate_bot доступен для импортов из тестов
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from aiogram import Bot
from aiogram.types import Message, Update
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from gate_bot.database.models import Base


class FrozenClock:
    """Управляемые часы для сервисов капчи (naive UTC, как в БД)."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, 12, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
async def sessionmaker(tmp_path):
    """Фабрика сессий поверх временного SQLite файла, схема создаётся заново."""
    db_path = tmp_path / "gate_test.db"
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", echo=False, poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield async_sessionmaker(engine, expire_on_commit=False)
    finally:
        await engine.dispose()


@pytest.fixture
async def db_session(sessionmaker):
    """Изолированная сессия БД для теста."""
    session = sessionmaker()
    try:
        yield session
    finally:
        try:
            await session.rollback()
        finally:
            await session.close()


@pytest.fixture
def bot_mock():
    """Async mock for aiogram Bot."""
    bot = AsyncMock(spec=Bot)
    bot.send_message = AsyncMock()
    bot.get_chat_member = AsyncMock()
    bot.delete_message = AsyncMock()
    bot.session = AsyncMock()
    bot.id = 424242
    return bot


@pytest.fixture
def tg_user_factory() -> Callable[..., SimpleNamespace]:
    """Фабрика telegram-пользователей (поля как у aiogram User)."""

    def _factory(user_id: int = 100, username: str = "tester", first_name: str = "Test", last_name=None):
        return SimpleNamespace(id=user_id, username=username, first_name=first_name, last_name=last_name)

    return _factory


@pytest.fixture
def fake_message_factory(tg_user_factory) -> Callable[..., SimpleNamespace]:
    """Лёгкое сообщение для вызова хендлеров напрямую: answer/delete - AsyncMock."""

    def _factory(
        *,
        text="hello",
        user_id: int = 100,
        chat_id: int = -1000,
        message_id: int = 1,
        content_type: str = "text",
        reply_to_message=None,
        from_user=...,
    ):
        return SimpleNamespace(
            message_id=message_id,
            text=text,
            content_type=content_type,
            from_user=tg_user_factory(user_id) if from_user is ... else from_user,
            chat=SimpleNamespace(id=chat_id, title="Test chat", type="supergroup"),
            reply_to_message=reply_to_message,
            answer=AsyncMock(),
            answer_photo=AsyncMock(),
            delete=AsyncMock(),
        )

    return _factory


@pytest.fixture
def message_factory() -> Callable[..., Message]:
    """Factory for aiogram Message instances."""

    def _factory(
        *,
        message_id: int = 1,
        user_id: int = 100,
        chat_id: int = -1000,
        text: str = "/start",
        chat_type: str = "supergroup",
        first_name: str = "Test",
        extra: dict = None,
    ) -> Message:
        payload = {
            "message_id": message_id,
            "date": datetime.now(timezone.utc),
            "chat": {"id": chat_id, "type": chat_type, "title": "Test chat"},
            "from": {"id": user_id, "is_bot": False, "first_name": first_name},
        }
        if text is not None:
            payload["text"] = text
        if extra:
            payload.update(extra)
        return Message.model_validate(payload)

    return _factory


@pytest.fixture
def update_factory() -> Callable[..., Update]:
    """Factory for aiogram Update objects."""

    def _factory(**payload) -> Update:
        return Update.model_validate({"update_id": 1, **payload})

    return _factory
