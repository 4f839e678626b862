from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime, Boolean
from sqlalchemy.orm import relationship
from sqlalchemy.orm import declarative_base
from datetime import datetime, timezone

Base = declarative_base()


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TrackingMixin:
    """Служебные поля, общие для всех таблиц: время создания/обновления и мягкое удаление."""

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False)


# 👤 Пользователи (субъекты проверки)
class User(TrackingMixin, Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True)  # user_<telegram_id>
    telegram_id = Column(String, unique=True, nullable=False, index=True)
    username = Column(String, nullable=True)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    captcha_passed = Column(Boolean, default=False, nullable=False)
    captcha_attempts = Column(Integer, default=0, nullable=False)
    last_captcha_attempt = Column(DateTime, nullable=True)

    captcha_sessions = relationship("CaptchaSession", back_populates="user")
    message_logs = relationship("MessageLog", back_populates="user")


# 🧩 Сессии капчи
# Строка создаётся при выдаче капчи и меняется ровно один раз: verified false -> true
class CaptchaSession(TrackingMixin, Base):
    __tablename__ = "captcha_sessions"

    id = Column(String, primary_key=True)  # 128 бит, hex
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    captcha_text = Column(String(32), nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)
    verified = Column(Boolean, default=False, nullable=False)

    user = relationship("User", back_populates="captcha_sessions")


# 💬 Журнал сообщений (пропущенные и заблокированные)
class MessageLog(TrackingMixin, Base):
    __tablename__ = "message_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    message_text = Column(Text, nullable=True)
    blocked = Column(Boolean, default=False, nullable=False)

    user = relationship("User", back_populates="message_logs")
