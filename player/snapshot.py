"""
Снимок наблюдаемого состояния плеера и сэмплер, который его получает.
"""
import math
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .errors import PlayerNotFound


@dataclass(frozen=True)
class PlayerSnapshot:
    """Состояние видеоэлемента и рекламного оверлея в один момент времени"""
    paused: bool
    ready_level: int
    position: float
    duration: float  # inf для эфира, 0 пока метаданные неизвестны
    ad_active: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlayerSnapshot":
        """Собирает снимок из ответа page.evaluate"""
        duration = data.get("dur")
        if duration is None or (isinstance(duration, float) and math.isnan(duration)):
            duration = 0.0
        return cls(
            paused=bool(data.get("paused", True)),
            ready_level=int(data.get("readyState") or 0),
            position=max(float(data.get("time") or 0.0), 0.0),
            duration=float(duration),
            ad_active=bool(data.get("ad", False)),
        )

    @property
    def is_live(self) -> bool:
        return math.isinf(self.duration)

    @property
    def has_finite_duration(self) -> bool:
        return math.isfinite(self.duration) and self.duration > 0

    def drift_from(self, other: "PlayerSnapshot") -> float:
        return abs(self.position - other.position)

    def describe(self) -> str:
        dur = "∞" if self.is_live else f"{self.duration:.2f}"
        return (
            f"t={self.position:.2f}s / dur={dur} paused={self.paused} "
            f"readyState={self.ready_level} ad={self.ad_active}"
        )


class StateSampler:
    """Делает одиночные снимки состояния плеера через сессию автоматизации"""

    def __init__(self, session):
        self.session = session

    def sample(self) -> Optional[PlayerSnapshot]:
        """Снимок или None, если видеоэлемента сейчас нет"""
        return self.session.sample_snapshot()

    def require(self) -> PlayerSnapshot:
        """Снимок для обязательной проверки: отсутствие элемента - ошибка сценария"""
        snapshot = self.sample()
        if snapshot is None:
            raise PlayerNotFound("Видеоэлемент не найден на странице")
        return snapshot

    def position(self, default: float = 0.0) -> float:
        snapshot = self.sample()
        return snapshot.position if snapshot is not None else default
