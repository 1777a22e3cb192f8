"""Исключения проверки плеера"""
from typing import Optional


class PlayerError(Exception):
    """Базовая ошибка проверки плеера"""


class CollaboratorFault(PlayerError):
    """Сбой слоя автоматизации браузера (элемент отсоединился, контекст уничтожен и т.п.)"""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class PlayerNotFound(CollaboratorFault):
    """Видеоэлемент отсутствует на шаге, где он обязателен"""


class ScenarioFailure(AssertionError):
    """Провал обязательной проверки сценария"""


class ScenarioCancelled(PlayerError):
    """Ожидание прервано внешним флагом отмены"""
