"""
Тесты админ-команд /stats и /reset_user
"""
from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from aiogram.exceptions import TelegramBadRequest

from gate_bot.database.models import utcnow
from gate_bot.database.queries import (
    get_or_create_user,
    get_user_by_telegram_id,
    mark_user_verified,
    record_challenge_issued,
)
from gate_bot.handlers.admin_handler import (
    ADMIN_ONLY_TEXT,
    RESET_USAGE_TEXT,
    reset_user_command,
    stats_command,
)
from gate_bot.services.admin_service import is_admin, parse_reset_target
from gate_bot.services.captcha import PendingSessionRegistry


def _member(status):
    return SimpleNamespace(status=status)


class TestIsAdmin:
    @pytest.mark.asyncio
    async def test_admin_ids_skip_api(self, bot_mock):
        assert await is_admin(bot_mock, -1000, 7, admin_ids=[7]) is True
        bot_mock.get_chat_member.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,expected", [
        ("creator", True),
        ("administrator", True),
        ("member", False),
        ("restricted", False),
    ])
    async def test_chat_status(self, bot_mock, status, expected):
        bot_mock.get_chat_member.return_value = _member(status)

        assert await is_admin(bot_mock, -1000, 7) is expected

    @pytest.mark.asyncio
    async def test_api_error_means_not_admin(self, bot_mock):
        bot_mock.get_chat_member.side_effect = TelegramBadRequest(method=MagicMock(), message="chat not found")

        assert await is_admin(bot_mock, -1000, 7) is False


class TestParseResetTarget:
    def test_reply_target(self, fake_message_factory, tg_user_factory):
        reply = SimpleNamespace(from_user=tg_user_factory(555))
        message = fake_message_factory(text="/reset_user", reply_to_message=reply)

        target = parse_reset_target(message)

        assert target.telegram_id == "555"
        assert target.target_type == "reply"

    def test_id_argument(self, fake_message_factory):
        target = parse_reset_target(fake_message_factory(text="/reset_user 12345"))

        assert target.telegram_id == "12345"
        assert target.target_type == "user_id"

    @pytest.mark.parametrize("text", ["/reset_user", "/reset_user abc", "/reset_user @someone"])
    def test_usage(self, fake_message_factory, text):
        assert parse_reset_target(fake_message_factory(text=text)) is None


class TestResetUserCommand:
    @pytest.mark.asyncio
    async def test_non_admin_refused(self, bot_mock, db_session, fake_message_factory):
        bot_mock.get_chat_member.return_value = _member("member")
        message = fake_message_factory(text="/reset_user 100", user_id=7)

        await reset_user_command(message, bot=bot_mock, session=db_session, pending_sessions=PendingSessionRegistry())

        message.answer.assert_awaited_once_with(ADMIN_ONLY_TEXT)

    @pytest.mark.asyncio
    async def test_usage_without_target(self, bot_mock, db_session, fake_message_factory):
        bot_mock.get_chat_member.return_value = _member("administrator")
        message = fake_message_factory(text="/reset_user", user_id=7)

        await reset_user_command(message, bot=bot_mock, session=db_session, pending_sessions=PendingSessionRegistry())

        message.answer.assert_awaited_once_with(RESET_USAGE_TEXT)

    @pytest.mark.asyncio
    async def test_reset_verified_user(self, bot_mock, db_session, sessionmaker, fake_message_factory, tg_user_factory):
        bot_mock.get_chat_member.return_value = _member("creator")
        user = await get_or_create_user(db_session, tg_user_factory(100))
        await record_challenge_issued(db_session, user.id, utcnow())
        await mark_user_verified(db_session, user.id)

        pending = PendingSessionRegistry()
        pending.set(100, "sess-1", utcnow() + timedelta(minutes=5))

        message = fake_message_factory(text="/reset_user 100", user_id=7)
        await reset_user_command(message, bot=bot_mock, session=db_session, pending_sessions=pending)

        assert "has been reset" in message.answer.call_args.args[0]
        assert pending.get(100) is None

        async with sessionmaker() as session:
            fresh = await get_user_by_telegram_id(session, 100)
        assert fresh.captcha_passed is False
        assert fresh.captcha_attempts == 0
        assert fresh.last_captcha_attempt is None

    @pytest.mark.asyncio
    async def test_reset_unknown_user(self, bot_mock, db_session, fake_message_factory):
        bot_mock.get_chat_member.return_value = _member("administrator")
        message = fake_message_factory(text="/reset_user 999", user_id=7)

        await reset_user_command(message, bot=bot_mock, session=db_session, pending_sessions=PendingSessionRegistry())

        assert "was not found" in message.answer.call_args.args[0]


class TestStatsCommand:
    @pytest.mark.asyncio
    async def test_non_admin_refused(self, bot_mock, db_session, fake_message_factory):
        bot_mock.get_chat_member.return_value = _member("member")
        message = fake_message_factory(text="/stats", user_id=7)

        await stats_command(message, bot=bot_mock, session=db_session)

        message.answer.assert_awaited_once_with(ADMIN_ONLY_TEXT)

    @pytest.mark.asyncio
    async def test_admin_gets_stats(self, bot_mock, db_session, fake_message_factory, tg_user_factory):
        bot_mock.get_chat_member.return_value = _member("administrator")
        await get_or_create_user(db_session, tg_user_factory(100))
        message = fake_message_factory(text="/stats", user_id=7)

        await stats_command(message, bot=bot_mock, session=db_session)

        args, kwargs = message.answer.call_args
        assert "Total users: 1" in args[0]
        assert kwargs["parse_mode"] == "HTML"
