import logging
from typing import Tuple

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, async_sessionmaker

from gate_bot.database.models import Base

logger = logging.getLogger(__name__)


def create_store(database_url: str, auth_token: str = "") -> Tuple[AsyncEngine, async_sessionmaker]:
    """
    Создаёт движок и фабрику сессий хранилища.

    Вызывается один раз при старте процесса; результат передаётся
    по ссылке всем компонентам, которым нужно хранилище.

    Args:
        database_url: Async URL SQLAlchemy (sqlite+aiosqlite://..., postgresql+asyncpg://...)
        auth_token: Токен авторизации удалённой базы (передаётся драйверу, если задан)

    Returns:
        Кортеж (engine, sessionmaker)
    """
    connect_args = {}
    if auth_token:
        connect_args["auth_token"] = auth_token

    engine = create_async_engine(
        database_url,
        echo=False,
        pool_pre_ping=True,  # Проверка соединения перед использованием
        pool_recycle=3600,   # Переподключение каждый час
        connect_args=connect_args,
    )
    sessionmaker = async_sessionmaker(engine, expire_on_commit=False)
    return engine, sessionmaker


async def init_db(engine: AsyncEngine) -> None:
    """Создаёт таблицы, если их ещё нет"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("✅ База данных инициализирована")
