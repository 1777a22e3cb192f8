"""Проверка того, что плеер показывает основной контент, а не рекламу"""
import logging
from typing import Optional

import config
from .ad_skipper import AdSkipper
from .errors import CollaboratorFault
from .poller import ConditionPoller
from .snapshot import PlayerSnapshot, StateSampler

logger = logging.getLogger(__name__)


class ContentReadinessGate:
    """Пропускает рекламу и ждёт, пока снимок плеера похож на основной ролик"""

    def __init__(
        self,
        session,
        ad_skipper: Optional[AdSkipper] = None,
        poller: Optional[ConditionPoller] = None,
        sampler: Optional[StateSampler] = None,
        ready_level: int = config.CONTENT_READY_LEVEL,
        min_duration_s: float = config.MIN_CONTENT_DURATION_S,
    ):
        self.session = session
        self.poller = poller or ConditionPoller.for_session(session)
        self.ad_skipper = ad_skipper or AdSkipper(session, poller=self.poller)
        self.sampler = sampler or StateSampler(session)
        self.ready_level = ready_level
        self.min_duration_s = min_duration_s
        self.last_snapshot: Optional[PlayerSnapshot] = None

    def looks_like_content(self, snapshot: PlayerSnapshot) -> bool:
        """Все три условия проверяются на одном и том же снимке"""
        # преролл обычно короче минуты, эфир имеет бесконечную длительность
        plausible_duration = snapshot.is_live or snapshot.duration >= self.min_duration_s
        return (not snapshot.ad_active) and snapshot.ready_level >= self.ready_level and plausible_duration

    def ensure_content_ready(
        self,
        max_wait_ms: float = config.TIMEOUTS["content_ready"],
        interval_ms: float = config.TIMEOUTS["content_ready_interval"],
    ) -> bool:
        deadline = self.poller.deadline(max_wait_ms)

        def ready() -> bool:
            self.ad_skipper.skip_ads_if_any(deadline=deadline)
            try:
                snapshot = self.sampler.sample()
            except CollaboratorFault as e:
                logger.debug(f"[CONTENT] Снимок не получен: {e}")
                return False
            self.last_snapshot = snapshot
            return snapshot is not None and self.looks_like_content(snapshot)

        outcome = self.poller.poll(ready, interval_ms=interval_ms, timeout_ms=deadline.remaining_ms(),
                                   label="content ready").raise_for_cancel("ожидание контента")
        if not outcome.ok:
            state = self.last_snapshot.describe() if self.last_snapshot else "нет видео"
            logger.warning(f"[CONTENT] Контент не готов за {max_wait_ms} мс: {state}")
        return outcome.ok
