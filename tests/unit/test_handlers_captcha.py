"""
Тесты хендлеров капчи: /start и перехват ответа
"""
from datetime import timedelta

import pytest
from aiogram.types import BufferedInputFile, ForceReply, ReplyKeyboardRemove

from gate_bot.database.models import utcnow
from gate_bot.database.queries import (
    get_or_create_user,
    get_user_by_telegram_id,
    mark_user_verified,
    record_challenge_issued,
)
from gate_bot.handlers.captcha_handler import (
    ALREADY_VERIFIED_TEXT,
    CAPTCHA_PLACEHOLDER,
    VERIFIED_TEXT,
    PendingCaptchaFilter,
    captcha_answer_handler,
    format_failure_text,
    start_command,
)
from gate_bot.services.captcha import (
    REASON_INCORRECT,
    REASON_INVALID_OR_EXPIRED,
    CaptchaIssuer,
    CaptchaSessionStore,
    CaptchaVerifier,
    PendingSessionRegistry,
)


@pytest.fixture
def store(sessionmaker):
    return CaptchaSessionStore(sessionmaker)


@pytest.fixture
def issuer(store):
    return CaptchaIssuer(store)


@pytest.fixture
def verifier(store):
    return CaptchaVerifier(store)


@pytest.fixture
def pending_sessions():
    return PendingSessionRegistry()


async def _fresh_user(sessionmaker, telegram_id=100):
    async with sessionmaker() as session:
        return await get_user_by_telegram_id(session, telegram_id)


class TestStartCommand:
    @pytest.mark.asyncio
    async def test_issues_captcha(self, db_session, sessionmaker, issuer, pending_sessions, fake_message_factory):
        message = fake_message_factory(text="/start")

        await start_command(message, session=db_session, issuer=issuer, pending_sessions=pending_sessions)

        message.answer_photo.assert_awaited_once()
        args, kwargs = message.answer_photo.call_args
        assert isinstance(args[0], BufferedInputFile)
        assert args[0].filename == "captcha.png"
        assert "5 minutes" in kwargs["caption"]
        assert isinstance(kwargs["reply_markup"], ForceReply)
        assert kwargs["reply_markup"].input_field_placeholder == CAPTCHA_PLACEHOLDER

        assert pending_sessions.get(100) is not None

        user = await _fresh_user(sessionmaker)
        assert user.captcha_attempts == 1
        assert user.last_captcha_attempt is not None
        assert user.captcha_passed is False

    @pytest.mark.asyncio
    async def test_already_verified(self, db_session, issuer, pending_sessions, fake_message_factory, tg_user_factory):
        user = await get_or_create_user(db_session, tg_user_factory(100))
        await mark_user_verified(db_session, user.id)
        db_session.expire_all()
        message = fake_message_factory(text="/start")

        await start_command(message, session=db_session, issuer=issuer, pending_sessions=pending_sessions)

        message.answer.assert_awaited_once_with(ALREADY_VERIFIED_TEXT)
        message.answer_photo.assert_not_awaited()
        assert pending_sessions.get(100) is None

    @pytest.mark.asyncio
    async def test_cooldown(self, db_session, sessionmaker, issuer, pending_sessions, fake_message_factory, tg_user_factory):
        user = await get_or_create_user(db_session, tg_user_factory(100))
        await record_challenge_issued(db_session, user.id, utcnow() - timedelta(seconds=10))
        db_session.expire_all()
        message = fake_message_factory(text="/start")

        await start_command(message, session=db_session, issuer=issuer, pending_sessions=pending_sessions)

        message.answer_photo.assert_not_awaited()
        text = message.answer.call_args.args[0]
        assert "Please wait 20 seconds" in text or "Please wait 19 seconds" in text

        # Отказ по кулдауну не считается выдачей
        fresh = await _fresh_user(sessionmaker)
        assert fresh.captcha_attempts == 1

    @pytest.mark.asyncio
    async def test_after_cooldown_issues_again(self, db_session, sessionmaker, issuer, pending_sessions, fake_message_factory, tg_user_factory):
        user = await get_or_create_user(db_session, tg_user_factory(100))
        await record_challenge_issued(db_session, user.id, utcnow() - timedelta(seconds=31))
        db_session.expire_all()
        message = fake_message_factory(text="/start")

        await start_command(message, session=db_session, issuer=issuer, pending_sessions=pending_sessions)

        message.answer_photo.assert_awaited_once()
        fresh = await _fresh_user(sessionmaker)
        assert fresh.captcha_attempts == 2


class TestCaptchaAnswer:
    @pytest.mark.asyncio
    async def test_correct_answer_verifies_user(
        self, db_session, sessionmaker, issuer, verifier, pending_sessions, fake_message_factory, tg_user_factory
    ):
        user = await get_or_create_user(db_session, tg_user_factory(100))
        issued = await issuer.issue(user.id)
        pending_sessions.set(100, issued.session_id, issued.expires_at)
        message = fake_message_factory(text=issued.answer.lower())

        await captcha_answer_handler(
            message,
            session=db_session,
            verifier=verifier,
            pending_sessions=pending_sessions,
            captcha_session_id=issued.session_id,
        )

        message.answer.assert_awaited_once()
        args, kwargs = message.answer.call_args
        assert args[0] == VERIFIED_TEXT
        assert isinstance(kwargs["reply_markup"], ReplyKeyboardRemove)
        assert pending_sessions.get(100) is None

        fresh = await _fresh_user(sessionmaker)
        assert fresh.captcha_passed is True

    @pytest.mark.asyncio
    async def test_wrong_answer_keeps_session(
        self, db_session, sessionmaker, issuer, verifier, pending_sessions, fake_message_factory, tg_user_factory
    ):
        user = await get_or_create_user(db_session, tg_user_factory(100))
        issued = await issuer.issue(user.id)
        pending_sessions.set(100, issued.session_id, issued.expires_at)
        wrong = "2" * len(issued.answer) if issued.answer != "222222" else "333333"
        message = fake_message_factory(text=wrong)

        await captcha_answer_handler(
            message,
            session=db_session,
            verifier=verifier,
            pending_sessions=pending_sessions,
            captcha_session_id=issued.session_id,
        )

        message.answer.assert_awaited_once_with(format_failure_text(REASON_INCORRECT))
        assert pending_sessions.get(100) == issued.session_id
        fresh = await _fresh_user(sessionmaker)
        assert fresh.captcha_passed is False

    def test_failure_texts(self):
        assert "Invalid or expired CAPTCHA session" in format_failure_text(REASON_INVALID_OR_EXPIRED)
        assert "Incorrect CAPTCHA" in format_failure_text(REASON_INCORRECT)
        assert "/start" in format_failure_text(REASON_INCORRECT)


class TestPendingCaptchaFilter:
    @pytest.mark.asyncio
    async def test_matches_pending_user(self, pending_sessions, fake_message_factory):
        pending_sessions.set(100, "sess-1", utcnow() + timedelta(minutes=5))

        result = await PendingCaptchaFilter()(fake_message_factory(text="ABCDEF"), pending_sessions)

        assert result == {"captcha_session_id": "sess-1"}

    @pytest.mark.asyncio
    async def test_ignores_commands(self, pending_sessions, fake_message_factory):
        pending_sessions.set(100, "sess-1", utcnow() + timedelta(minutes=5))

        result = await PendingCaptchaFilter()(fake_message_factory(text="/start"), pending_sessions)

        assert result is False

    @pytest.mark.asyncio
    async def test_ignores_users_without_captcha(self, pending_sessions, fake_message_factory):
        result = await PendingCaptchaFilter()(fake_message_factory(text="ABCDEF"), pending_sessions)

        assert result is False
