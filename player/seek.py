"""
Перемотка вперёд с подтверждением по измеренной позиции.

Основной путь - программная установка currentTime с гонкой события seeked против
таймаута (некоторые потоки событие не присылают). Если позиция не ушла вперёд,
используется клик по прогресс-бару.
"""
import logging
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Optional

import config
from .errors import CollaboratorFault
from .snapshot import PlayerSnapshot, StateSampler

logger = logging.getLogger(__name__)


class SeekMethod(Enum):
    PROGRAMMATIC = "programmatic"
    UI_FALLBACK = "ui_fallback"


@dataclass(frozen=True)
class SeekRequest:
    jump_seconds: float = config.SEEK_JUMP_SECONDS

    def __post_init__(self):
        if self.jump_seconds <= 0:
            raise ValueError(f"jump_seconds должен быть положительным, получено: {self.jump_seconds}")

    def target_from(self, snapshot: PlayerSnapshot) -> float:
        """Цель перемотки: не дальше последней секунды для конечных роликов"""
        target = snapshot.position + self.jump_seconds
        if snapshot.has_finite_duration:
            target = min(target, max(snapshot.duration - 1, 0.0))
        return target


@dataclass
class SeekResult:
    before: float
    target: float
    after: float
    method: SeekMethod
    advanced: bool
    event_fired: bool = False

    @property
    def delta(self) -> float:
        return self.after - self.before

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["method"] = self.method.value
        data["delta"] = round(self.delta, 3)
        return data


class SeekCoordinator:
    """Перематывает видео и проверяет, что позиция действительно ушла вперёд"""

    def __init__(
        self,
        session,
        sampler: Optional[StateSampler] = None,
        min_advance_s: float = config.SEEK_MIN_ADVANCE_S,
        progress_bar_selector: str = config.SELECTORS["progress_bar"],
        player_selector: str = config.SELECTORS["player"],
        fallback_fraction: float = config.SEEK_FALLBACK_FRACTION,
    ):
        self.session = session
        self.sampler = sampler or StateSampler(session)
        self.min_advance_s = min_advance_s
        self.progress_bar_selector = progress_bar_selector
        self.player_selector = player_selector
        self.fallback_fraction = fallback_fraction

    def _advanced(self, before: PlayerSnapshot, after: PlayerSnapshot) -> bool:
        return after.position > before.position + self.min_advance_s

    def _click_progress_bar(self) -> bool:
        """Клик по прогресс-бару в точке fallback_fraction ширины"""
        try:
            box = self.session.bounding_box(self.player_selector)
            if box:
                self.session.hover(box["x"] + box["width"] / 2, box["y"] + box["height"] / 2)
            if self.session.find_visible(self.progress_bar_selector) is None:
                logger.warning("[SEEK] Прогресс-бар не виден, запасной способ недоступен")
                return False
            bar = self.session.bounding_box(self.progress_bar_selector)
        except CollaboratorFault as e:
            logger.warning(f"[SEEK] Не удалось найти прогресс-бар: {e}")
            return False
        if not bar:
            return False
        x = bar["x"] + bar["width"] * self.fallback_fraction
        y = bar["y"] + bar["height"] / 2
        try:
            self.session.pointer_click_at(x, y)
        except CollaboratorFault as e:
            logger.warning(f"[SEEK] Клик по прогресс-бару не прошёл: {e}")
            return False
        logger.info(f"[SEEK] Клик по прогресс-бару в точке ({x:.0f}, {y:.0f})")
        return True

    def seek(
        self,
        jump_seconds: float = config.SEEK_JUMP_SECONDS,
        max_wait_ms: float = config.TIMEOUTS["seek_event"],
    ) -> SeekResult:
        request = SeekRequest(jump_seconds)
        before = self.sampler.require()
        target = request.target_from(before)
        logger.info(f"[SEEK] До перемотки: {before.describe()}, цель {target:.2f}s")

        event_fired = self.session.set_position(target, confirm_event="seeked", timeout_ms=max_wait_ms)
        if not event_fired:
            logger.info(f"[SEEK] Событие seeked не пришло за {max_wait_ms} мс")
        after = self.sampler.require()
        method = SeekMethod.PROGRAMMATIC

        if not self._advanced(before, after):
            logger.warning(f"[SEEK] Программная перемотка не сдвинула позицию (t={after.position:.2f}s)")
            if self._click_progress_bar():
                self.session.wait(config.TIMEOUTS["seek_fallback_settle"])
                after = self.sampler.require()
                method = SeekMethod.UI_FALLBACK

        result = SeekResult(
            before=before.position,
            target=target,
            after=after.position,
            method=method,
            advanced=self._advanced(before, after),
            event_fired=event_fired,
        )
        logger.info(f"[SEEK] После перемотки: t={result.after:.2f}s ({result.method.value}, Δ={result.delta:.2f}s)")
        return result
