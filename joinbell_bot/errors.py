"""Исключения ядра набора. Ни одно из них не должно ронять процесс."""


class RecruitError(Exception):
    """Базовый класс ошибок набора"""


class DecodeError(RecruitError):
    """Не удалось восстановить RecruitmentState из текста сообщения"""


class StateNotFound(DecodeError):
    """В сообщении нет блока с настройками (сообщение не наше)"""


class StateMalformed(DecodeError):
    """Блок есть, но не разбирается: синтаксис, типы, обязательные ключи"""


class StateInvalid(DecodeError):
    """Блок разобран, но значения нарушают инварианты"""


class SideEffectError(RecruitError):
    """Вызов Discord API завершился ошибкой (нет прав, таймаут, сеть)"""

    def __init__(self, action: str, cause: BaseException | None = None):
        self.action = action
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"{action} failed{detail}")


class CleanupError(RecruitError):
    """Отложенная очистка не удалась. Только логируется"""
