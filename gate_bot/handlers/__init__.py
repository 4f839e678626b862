# Импорт всех роутеров для удобного подключения
from .captcha_handler import captcha_router
from .admin_handler import admin_router
from .gate_handler import gate_router
from .errors_handler import errors_router

# Объединяем все роутеры в один
from aiogram import Router

handlers_router = Router(name="handlers")
# Порядок важен:
# 1. captcha - /start и перехват ответа на капчу (до гейта, иначе ответ заблокируется)
# 2. admin - /stats, /reset_user
# 3. gate - все остальные сообщения
# 4. errors - ошибки хранилища из любого хендлера выше
handlers_router.include_router(captcha_router)
handlers_router.include_router(admin_router)
handlers_router.include_router(gate_router)
handlers_router.include_router(errors_router)

__all__ = ["handlers_router"]
