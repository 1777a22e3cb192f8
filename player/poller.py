"""
Опрос условия с ограничением по времени.

Единственное место, где живут циклы повторов: каждый тик вычисляет предикат,
между тиками выполняется кооперативное ожидание через сессию (page.wait_for_timeout),
поэтому браузер продолжает обрабатывать события, таймеры рекламы и перерисовку.
"""
import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from .errors import CollaboratorFault, ScenarioCancelled
from .snapshot import PlayerSnapshot

logger = logging.getLogger(__name__)


class PollStatus(Enum):
    """Исход опроса"""
    SUCCESS = "success"
    TIMED_OUT = "timed_out"
    FAULT = "fault"
    CANCELLED = "cancelled"


@dataclass
class PollOutcome:
    status: PollStatus
    value: Any = None
    attempts: int = 0
    elapsed_ms: float = 0.0
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.status is PollStatus.SUCCESS

    @property
    def timed_out(self) -> bool:
        return self.status is PollStatus.TIMED_OUT

    def raise_for_fault(self) -> "PollOutcome":
        """Пробрасывает сбой коллаборатора, если опрос им закончился"""
        if self.status is PollStatus.FAULT and self.error is not None:
            raise self.error
        return self

    def raise_for_cancel(self, label: str = "ожидание") -> "PollOutcome":
        """Превращает отмену в ScenarioCancelled, чтобы она не выглядела как таймаут"""
        if self.status is PollStatus.CANCELLED:
            raise ScenarioCancelled(f"{label}: отменено после {self.attempts} попыток")
        return self

    def __bool__(self) -> bool:
        return self.ok


class Deadline:
    """Абсолютный момент отсечки, вычисленный в начале операции"""

    def __init__(self, timeout_ms: float, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self.started_at = clock()
        self.expires_at = self.started_at + max(timeout_ms, 0) / 1000.0

    def remaining_ms(self) -> float:
        return max((self.expires_at - self.clock()) * 1000.0, 0.0)

    def elapsed_ms(self) -> float:
        return (self.clock() - self.started_at) * 1000.0

    def expired(self) -> bool:
        return self.clock() >= self.expires_at


class ConditionPoller:
    """
    Повторяет проверку предиката до успеха или истечения дедлайна.

    Аргументы:
        sleep: кооперативное ожидание в миллисекундах
        clock: монотонные часы в секундах
        cancel_event: внешний флаг досрочной остановки (проверяется на каждом тике)
    """

    def __init__(
        self,
        sleep: Callable[[float], None],
        clock: Callable[[], float] = time.monotonic,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.sleep = sleep
        self.clock = clock
        self.cancel_event = cancel_event

    @classmethod
    def for_session(cls, session, cancel_event: Optional[threading.Event] = None) -> "ConditionPoller":
        return cls(sleep=session.wait, clock=session.clock, cancel_event=cancel_event)

    def deadline(self, timeout_ms: float) -> Deadline:
        return Deadline(timeout_ms, self.clock)

    def poll(
        self,
        predicate: Callable[..., Any],
        sampler: Optional[Callable[[], Optional[PlayerSnapshot]]] = None,
        interval_ms: float = 500,
        timeout_ms: float = 10000,
        tolerate_faults: bool = False,
        label: str = "condition",
    ) -> PollOutcome:
        """
        Вычисляет предикат сразу, затем после каждого интервала, пока он не выполнится
        или не истечёт дедлайн.

        Если передан sampler, предикат получает свежий снимок; None от сэмплера означает
        "элемента пока нет" и считается неуспешным тиком. Таймаут возвращается как
        PollStatus.TIMED_OUT, исключение не выбрасывается.
        """
        if interval_ms <= 0:
            raise ValueError(f"interval_ms должен быть положительным, получено: {interval_ms}")

        deadline = self.deadline(timeout_ms)
        attempts = 0
        last_fault: Optional[CollaboratorFault] = None

        while True:
            if self.cancel_event is not None and self.cancel_event.is_set():
                logger.info(f"[POLL] '{label}' отменён после {attempts} попыток")
                return PollOutcome(PollStatus.CANCELLED, attempts=attempts, elapsed_ms=deadline.elapsed_ms())

            attempts += 1
            try:
                if sampler is not None:
                    snapshot = sampler()
                    passed = snapshot is not None and bool(predicate(snapshot))
                    value = snapshot
                else:
                    value = predicate()
                    passed = bool(value)
            except CollaboratorFault as e:
                if not tolerate_faults:
                    logger.warning(f"[POLL] '{label}': сбой коллаборатора: {e}")
                    return PollOutcome(
                        PollStatus.FAULT, attempts=attempts, elapsed_ms=deadline.elapsed_ms(), error=e
                    )
                last_fault = e
                passed = False
                value = None

            if passed:
                return PollOutcome(
                    PollStatus.SUCCESS, value=value, attempts=attempts, elapsed_ms=deadline.elapsed_ms()
                )

            remaining = deadline.remaining_ms()
            # остаток меньше миллисекунды уже не даст ещё одного осмысленного тика
            if remaining < 1.0:
                logger.debug(f"[POLL] '{label}' не выполнено за {timeout_ms} мс ({attempts} попыток)")
                return PollOutcome(
                    PollStatus.TIMED_OUT, attempts=attempts, elapsed_ms=deadline.elapsed_ms(), error=last_fault
                )

            self.sleep(min(interval_ms, remaining))
