# gate_bot/services/captcha/generator_service.py
"""
Генерация текста и изображения капчи.

Отвечает за:
- Случайный ответ из алфавита без похожих символов
- Растеризацию ответа в зашумлённую PNG-картинку 200x80
"""

import logging
import math
import random
import secrets
from io import BytesIO
from typing import Optional

from PIL import Image, ImageDraw, ImageFont


logger = logging.getLogger(__name__)

# Без I, O, 0, 1 - их легко перепутать на картинке
CAPTCHA_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
DEFAULT_CAPTCHA_LENGTH = 6

CANVAS_WIDTH = 200
CANVAS_HEIGHT = 80
BACKGROUND_COLOR = (240, 240, 240)
TEXT_COLOR = (51, 51, 51)
FONT_SIZE = 40

NOISE_LINE_COUNT = 6
NOISE_LINE_ALPHA = 77   # ~0.3
NOISE_DOT_COUNT = 100
NOISE_DOT_SIZE = 2
NOISE_DOT_ALPHA = 128   # ~0.5

# Разброс по вертикали (px) и поворот (радианы) для каждого символа
CHAR_JITTER_PX = 5
CHAR_ROTATION_RAD = 0.4

# Жирные шрифты в порядке приоритета
FONT_PATHS = [
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationSans-Bold.ttf",
    "/usr/share/fonts/dejavu/DejaVuSans-Bold.ttf",
    "/System/Library/Fonts/Supplemental/Arial Bold.ttf",  # macOS
    "C:\\Windows\\Fonts\\arialbd.ttf",  # Windows
    "arialbd.ttf",
    "DejaVuSans-Bold.ttf",
]

_FONT_CACHE: Optional[ImageFont.FreeTypeFont] = None


class CaptchaRenderError(RuntimeError):
    """Не удалось растеризовать капчу - ошибка конфигурации окружения."""


def generate_captcha_text(length: int = DEFAULT_CAPTCHA_LENGTH) -> str:
    """
    Генерирует ответ капчи.

    Каждый символ - независимая равновероятная выборка из CAPTCHA_ALPHABET
    через криптографический генератор secrets.

    Args:
        length: Длина ответа

    Returns:
        Строка длины length
    """
    return "".join(secrets.choice(CAPTCHA_ALPHABET) for _ in range(length))


def _load_font() -> ImageFont.FreeTypeFont:
    """
    Загружает жирный шрифт один раз и кэширует результат.

    Raises:
        CaptchaRenderError: ни один TrueType шрифт недоступен
    """
    global _FONT_CACHE

    if _FONT_CACHE is not None:
        return _FONT_CACHE

    for path in FONT_PATHS:
        try:
            _FONT_CACHE = ImageFont.truetype(path, FONT_SIZE)
            logger.info(f"✅ [FONT] Загружен шрифт: {path}")
            return _FONT_CACHE
        except (IOError, OSError):
            continue

    # Встроенный шрифт Pillow масштабируется только при наличии FreeType
    try:
        _FONT_CACHE = ImageFont.load_default(size=FONT_SIZE)
    except (IOError, OSError, TypeError) as e:
        raise CaptchaRenderError(f"Нет доступного шрифта для капчи: {e}") from e

    if not isinstance(_FONT_CACHE, ImageFont.FreeTypeFont):
        _FONT_CACHE = None
        raise CaptchaRenderError("Pillow собран без FreeType - капчу нарисовать нельзя")

    logger.warning("⚠️ [FONT] Системные шрифты не найдены, используется встроенный шрифт Pillow")
    return _FONT_CACHE


def _random_rgba(alpha: int) -> tuple:
    return (random.randint(0, 255), random.randint(0, 255), random.randint(0, 255), alpha)


def _draw_char(img: Image.Image, ch: str, center_x: float, center_y: float, font) -> None:
    """Рисует один символ на прозрачной плитке, поворачивает и вклеивает по центру."""
    tile_size = FONT_SIZE * 2
    tile = Image.new("RGBA", (tile_size, tile_size), (255, 255, 255, 0))
    ImageDraw.Draw(tile).text(
        (tile_size / 2, tile_size / 2), ch, font=font, fill=TEXT_COLOR + (255,), anchor="mm"
    )

    angle_rad = random.uniform(-CHAR_ROTATION_RAD, CHAR_ROTATION_RAD)
    # PIL вращает против часовой стрелки в градусах
    rotated = tile.rotate(math.degrees(angle_rad), resample=Image.Resampling.BICUBIC)

    left = int(round(center_x - tile_size / 2))
    top = int(round(center_y - tile_size / 2))
    img.paste(rotated, (left, top), rotated)


def render_captcha_image(text: str) -> bytes:
    """
    Рисует капчу: фон, 6 шумовых линий, 100 шумовых точек, символы с наклоном.

    Шум и положение символов перегенерируются при каждом вызове,
    поэтому два рендера одного текста дают разные байты.

    Args:
        text: Ответ капчи

    Returns:
        PNG в байтах

    Raises:
        CaptchaRenderError: окружение не позволяет нарисовать капчу
    """
    font = _load_font()

    width, height = CANVAS_WIDTH, CANVAS_HEIGHT
    img = Image.new("RGB", (width, height), color=BACKGROUND_COLOR)
    # Режим RGBA у Draw смешивает полупрозрачные цвета с фоном
    d = ImageDraw.Draw(img, "RGBA")

    for _ in range(NOISE_LINE_COUNT):
        start = (random.uniform(0, width), random.uniform(0, height))
        end = (random.uniform(0, width), random.uniform(0, height))
        d.line([start, end], fill=_random_rgba(NOISE_LINE_ALPHA), width=1)

    for _ in range(NOISE_DOT_COUNT):
        x = random.randint(0, width - NOISE_DOT_SIZE)
        y = random.randint(0, height - NOISE_DOT_SIZE)
        d.rectangle(
            [x, y, x + NOISE_DOT_SIZE - 1, y + NOISE_DOT_SIZE - 1],
            fill=_random_rgba(NOISE_DOT_ALPHA),
        )

    # Символы по равным слотам: width / (len + 1)
    char_width = width / (len(text) + 1)
    for i, ch in enumerate(text):
        x = char_width * (i + 1)
        y = height / 2 + random.uniform(-CHAR_JITTER_PX, CHAR_JITTER_PX)
        _draw_char(img, ch, x, y, font)

    buffer = BytesIO()
    try:
        img.save(buffer, format="PNG")
    except (IOError, OSError) as e:
        raise CaptchaRenderError(f"Не удалось сохранить PNG: {e}") from e

    image_bytes = buffer.getvalue()
    logger.debug(
        f"🖼️ [CAPTCHA_RENDER] Картинка готова: {width}x{height}, "
        f"символов={len(text)}, размер={len(image_bytes)} байт"
    )
    return image_bytes


def ensure_renderer_available() -> None:
    """
    Пробный рендер при старте процесса.

    Raises:
        CaptchaRenderError: рендер недоступен (процесс не должен стартовать)
    """
    render_captcha_image(generate_captcha_text())
    logger.info("✅ [CAPTCHA_RENDER] Рендер капчи доступен")
