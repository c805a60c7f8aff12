"""
Ошибки прогресса и доступа
"""


class ProgressError(Exception):
    """Базовая ошибка движка прогресса"""

    default_message = "Ошибка обработки урока"

    def __init__(self, message: str = ""):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class NotFound(ProgressError):
    """Программа, урок, пользователь или строка прогресса не найдены"""

    default_message = "Не найдено"


class NotStarted(ProgressError):
    """Попытка завершить урок, который ещё не начат"""

    default_message = "Урок ещё не начат"


class NotAvailable(ProgressError):
    """Урок закрыт или сгорел — завершить нельзя"""

    default_message = "Урок недоступен для завершения"


class AccessDenied(ProgressError):
    """Платный урок без оплаченного доступа"""

    default_message = "Нужно вступить в платный канал, чтобы открыть урок."
