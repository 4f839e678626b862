# gate_bot/services/captcha/pending_sessions.py
"""
Привязка telegram user id -> id текущей сессии капчи.

Таблица живёт только в памяти процесса и носит справочный характер:
решение о верификации всегда принимается по хранилищу. Записи
удаляются при успехе, при админском сбросе и лениво после истечения
срока жизни сессии.
"""

import logging
from datetime import datetime
from typing import Callable, Dict, Optional, Tuple

from gate_bot.database.models import utcnow


class PendingSessionRegistry:
    def __init__(self, clock: Callable[[], datetime] = utcnow, logger: Optional[logging.Logger] = None):
        self._entries: Dict[int, Tuple[str, datetime]] = {}
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)

    def set(self, telegram_id: int, session_id: str, expires_at: datetime) -> None:
        # Новая выдача перезаписывает предыдущую привязку
        self._entries[telegram_id] = (session_id, expires_at)

    def get(self, telegram_id: int) -> Optional[str]:
        entry = self._entries.get(telegram_id)
        if entry is None:
            return None

        session_id, expires_at = entry
        if expires_at <= self._clock():
            # Сессию брошенной капчи держать незачем
            del self._entries[telegram_id]
            self._logger.debug(f"🧹 [PENDING] Истекла привязка user={telegram_id}, session={session_id}")
            return None
        return session_id

    def discard(self, telegram_id: int) -> bool:
        return self._entries.pop(telegram_id, None) is not None

    def purge_expired(self) -> int:
        now = self._clock()
        expired = [tg_id for tg_id, (_, expires_at) in self._entries.items() if expires_at <= now]
        for tg_id in expired:
            del self._entries[tg_id]
        return len(expired)

    def __contains__(self, telegram_id: int) -> bool:
        return self.get(telegram_id) is not None

    def __len__(self) -> int:
        return len(self._entries)
