"""Обнаружение и пропуск рекламного оверлея"""
import logging
from typing import List, Optional, Sequence

import config
from .errors import CollaboratorFault
from .poller import ConditionPoller, Deadline

logger = logging.getLogger(__name__)


class AdSkipper:
    """
    Пытается закрыть рекламу кнопкой 'Пропустить' и дожидается, пока плеер
    выйдет из рекламного состояния. Отсутствие рекламы - нормальный исход,
    поэтому сбои кликов и проверок здесь не пробрасываются.
    """

    def __init__(
        self,
        session,
        poller: Optional[ConditionPoller] = None,
        skip_selectors: Sequence[str] = config.SKIP_AD_SELECTORS,
        player_selector: str = config.SELECTORS["player"],
    ):
        self.session = session
        self.poller = poller or ConditionPoller.for_session(session)
        self.skip_selectors: List[str] = list(skip_selectors)
        self.player_selector = player_selector
        self.clicked_via: Optional[str] = None

    def _reveal_controls(self) -> None:
        """Наводит курсор на плеер, чтобы показались элементы управления"""
        try:
            box = self.session.bounding_box(self.player_selector)
            if box:
                self.session.hover(box["x"] + box["width"] / 2, box["y"] + config.PLAYER_HOVER_OFFSET_Y)
        except CollaboratorFault:
            pass

    def _click_skip_button(self) -> Optional[str]:
        for selector in self.skip_selectors:
            try:
                button = self.session.find_visible(selector)
            except CollaboratorFault:
                continue
            if button is None:
                continue
            # кнопка может быть видна, но ещё не интерактивна
            if not self.session.click(button, timeout_ms=config.TIMEOUTS["skip_click"]):
                self.session.click(button, force=True, timeout_ms=config.TIMEOUTS["skip_click"])
            logger.info(f"[ADS] Нажата кнопка пропуска рекламы: {selector}")
            return selector
        return None

    def _ad_active(self) -> bool:
        try:
            return self.session.is_ad_overlay_active()
        except CollaboratorFault:
            return True

    def skip_ads_if_any(
        self,
        max_wait_ms: float = config.TIMEOUTS["ad_skip"],
        clear_wait_ms: float = config.TIMEOUTS["ad_clear"],
        interval_ms: float = config.TIMEOUTS["ad_skip_interval"],
        deadline: Optional[Deadline] = None,
    ) -> bool:
        """
        Возвращает True, если к концу ожидания рекламный оверлей снят.
        Общий deadline вызывающей стороны, если передан, ограничивает оба ожидания.
        """
        self.clicked_via = None

        def budget(limit_ms: float) -> float:
            return limit_ms if deadline is None else min(limit_ms, deadline.remaining_ms())

        def attempt() -> bool:
            self._reveal_controls()
            self.clicked_via = self._click_skip_button()
            if self.clicked_via:
                return True
            return not self._ad_active()

        self.poller.poll(attempt, interval_ms=interval_ms, timeout_ms=budget(max_wait_ms),
                         tolerate_faults=True, label="skip ad").raise_for_cancel("пропуск рекламы")

        # после клика оверлей исчезает не сразу
        cleared = self.poller.poll(
            lambda: not self._ad_active(),
            interval_ms=interval_ms,
            timeout_ms=budget(clear_wait_ms),
            tolerate_faults=True,
            label="ad cleared",
        ).raise_for_cancel("снятие рекламы")
        if not cleared.ok:
            logger.info("[ADS] Плеер всё ещё в рекламном состоянии")
        return cleared.ok
