# gate_bot/services/captcha/__init__.py
"""
Модуль сервисов капчи.

- generator_service.py - текст ответа и картинка
- session_store.py - сессии капчи в хранилище
- issuer_service.py - кулдаун и выдача капчи
- verification_service.py - проверка ответа
- pending_sessions.py - привязка telegram id -> сессия
"""

from gate_bot.services.captcha.generator_service import (
    CAPTCHA_ALPHABET,
    CaptchaRenderError,
    ensure_renderer_available,
    generate_captcha_text,
    render_captcha_image,
)
from gate_bot.services.captcha.issuer_service import (
    CaptchaIssuer,
    IssuedCaptcha,
    RateLimitDecision,
    check_rate_limit,
)
from gate_bot.services.captcha.pending_sessions import PendingSessionRegistry
from gate_bot.services.captcha.session_store import CaptchaSessionStore
from gate_bot.services.captcha.verification_service import (
    REASON_INCORRECT,
    REASON_INVALID_OR_EXPIRED,
    CaptchaVerifier,
    VerificationResult,
)

__all__ = [
    "CAPTCHA_ALPHABET",
    "CaptchaRenderError",
    "ensure_renderer_available",
    "generate_captcha_text",
    "render_captcha_image",
    "CaptchaIssuer",
    "IssuedCaptcha",
    "RateLimitDecision",
    "check_rate_limit",
    "PendingSessionRegistry",
    "CaptchaSessionStore",
    "REASON_INCORRECT",
    "REASON_INVALID_OR_EXPIRED",
    "CaptchaVerifier",
    "VerificationResult",
]
