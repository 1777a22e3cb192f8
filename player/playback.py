"""
Подтверждение воспроизведения и паузы.

Воспроизведение считается живым только если позиция реально растёт между тиками:
флаг paused и readyState сами по себе не отличают играющее видео от зависшего.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

import config
from .poller import ConditionPoller
from .snapshot import PlayerSnapshot, StateSampler

logger = logging.getLogger(__name__)


class PlaybackEnsurer:
    """Запускает воспроизведение и ждёт, пока позиция начнёт расти"""

    def __init__(
        self,
        session,
        poller: Optional[ConditionPoller] = None,
        sampler: Optional[StateSampler] = None,
        ready_level: int = config.PLAYING_READY_LEVEL,
        min_delta_s: float = config.MIN_PLAYBACK_DELTA_S,
    ):
        self.session = session
        self.poller = poller or ConditionPoller.for_session(session)
        self.sampler = sampler or StateSampler(session)
        self.ready_level = ready_level
        self.min_delta_s = min_delta_s

    def ensure_playing(
        self,
        max_wait_ms: float = config.TIMEOUTS["ensure_playing"],
        interval_ms: float = config.TIMEOUTS["ensure_playing_interval"],
    ) -> bool:
        """
        Отправляет play и опрашивает плеер, пока он не на паузе, достаточно
        буферизован и позиция выросла минимум на min_delta_s с прошлого тика.
        Если на тике видео на паузе (автоплей подавлен, случайная пауза), play
        отправляется повторно. Возвращает False по таймауту, при отмене
        выбрасывает ScenarioCancelled.
        """
        self.session.dispatch_play()
        previous: List[Optional[float]] = [None]

        def advancing(snapshot: PlayerSnapshot) -> bool:
            # первый тик только фиксирует точку отсчёта, play уже отправлен
            if previous[0] is None:
                previous[0] = snapshot.position
                return False
            delta = snapshot.position - previous[0]
            if not snapshot.paused and snapshot.ready_level >= self.ready_level and delta >= self.min_delta_s:
                logger.info(f"[PLAYBACK] Воспроизведение подтверждено (Δ={delta:.2f}s, readyState={snapshot.ready_level})")
                return True
            if snapshot.paused:
                self.session.dispatch_play()
            previous[0] = snapshot.position
            return False

        outcome = self.poller.poll(
            advancing,
            sampler=self.sampler.sample,
            interval_ms=interval_ms,
            timeout_ms=max_wait_ms,
            label="playback advancing",
        ).raise_for_fault().raise_for_cancel("ожидание воспроизведения")

        if not outcome.ok:
            logger.warning(f"[PLAYBACK] Воспроизведение не подтвердилось за {max_wait_ms} мс")
        return outcome.ok


@dataclass
class PauseCheck:
    """Результат проверки устойчивости паузы"""
    positions: List[float] = field(default_factory=list)
    epsilon: float = config.PAUSE_EPSILON_S

    @property
    def drifts(self) -> List[float]:
        return [abs(b - a) for a, b in zip(self.positions, self.positions[1:])]

    @property
    def max_drift(self) -> float:
        return max(self.drifts, default=0.0)

    @property
    def stable(self) -> bool:
        return len(self.positions) >= 2 and self.max_drift < self.epsilon


class PauseVerifier:
    """Ставит паузу и проверяет, что позиция не двигается"""

    def __init__(self, session, sampler: Optional[StateSampler] = None, epsilon_s: float = config.PAUSE_EPSILON_S):
        self.session = session
        self.sampler = sampler or StateSampler(session)
        self.epsilon_s = epsilon_s

    def pause_and_verify(self, check_ms: float = config.PAUSE_CHECK_MS) -> PauseCheck:
        self.session.dispatch_pause()
        return self.hold(check_ms, sample_every_ms=check_ms)

    def hold(self, hold_ms: float, sample_every_ms: float = config.PAUSE_SAMPLE_EVERY_MS) -> PauseCheck:
        """
        Держит паузу hold_ms, снимая позицию каждые sample_every_ms и в конце.
        Каждая соседняя пара снимков должна отличаться меньше чем на epsilon.
        """
        check = PauseCheck(positions=[self.sampler.require().position], epsilon=self.epsilon_s)
        elapsed = 0.0
        while elapsed < hold_ms:
            step = min(sample_every_ms, hold_ms - elapsed)
            self.session.wait(step)
            elapsed += step
            check.positions.append(self.sampler.require().position)

        logger.info(f"[PAUSE] {len(check.positions)} снимков за {hold_ms} мс, макс. дрейф {check.max_drift:.3f}s")
        return check
