"""
Узкий интерфейс к слою автоматизации браузера и его реализация на Playwright.

Ядро (сэмплер, опрос, пропуск рекламы, воспроизведение, перемотка) работает только
через PlayerSession. Методы навигации нужны лишь сценарию.
"""
import logging
import re
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Sequence

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Locator, Page, Playwright
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

import config
from .errors import CollaboratorFault
from .snapshot import PlayerSnapshot

logger = logging.getLogger(__name__)


# --- Скрипты, выполняемые на странице ---
JS_STATE = """
({video, player, adClasses}) => {
    const v = document.querySelector(video);
    if (!v) return null;
    const p = document.querySelector(player);
    const ad = !!(p && adClasses.some(c => p.classList.contains(c)));
    return {
        paused: v.paused,
        readyState: v.readyState,
        time: v.currentTime,
        dur: Number.isNaN(v.duration) ? 0 : v.duration,
        ad: ad
    };
}
"""

JS_PLAY = """
(sel) => {
    const v = document.querySelector(sel);
    if (v && v.paused) { v.muted = true; return v.play().catch(() => {}); }
}
"""

JS_PAUSE = """
(sel) => {
    const v = document.querySelector(sel);
    if (v && !v.paused) v.pause();
}
"""

JS_AD_ACTIVE = """
({player, adClasses}) => {
    const p = document.querySelector(player);
    return !!(p && adClasses.some(c => p.classList.contains(c)));
}
"""

# Слушатель вешается до изменения currentTime: seeked может прийти раньше,
# чем Python успеет вызвать wait_for_event
JS_ARM_EVENT = """
({sel, eventName}) => {
    const v = document.querySelector(sel);
    if (!v) return false;
    v.__firedEvents = v.__firedEvents || {};
    v.__firedEvents[eventName] = false;
    v.addEventListener(eventName, () => { v.__firedEvents[eventName] = true; }, { once: true });
    return true;
}
"""

JS_SET_TIME = """
({sel, target}) => {
    const v = document.querySelector(sel);
    if (!v) return false;
    v.currentTime = target;
    return true;
}
"""

JS_WAIT_EVENT = """
async ({sel, eventName, timeout}) => {
    const v = document.querySelector(sel);
    if (!v) return false;
    if (v.__firedEvents && v.__firedEvents[eventName]) return true;
    return await new Promise((resolve) => {
        const onEvent = () => { clearTimeout(timer); resolve(true); };
        const timer = setTimeout(() => { v.removeEventListener(eventName, onEvent); resolve(false); }, timeout);
        v.addEventListener(eventName, onEvent, { once: true });
    });
}
"""

JS_METADATA_READY = """
(sel) => {
    const v = document.querySelector(sel);
    return v && v.readyState >= 2 && v.duration > 0;
}
"""


class PlayerSession(ABC):
    """Минимальная поверхность слоя автоматизации, которую потребляет ядро"""

    def clock(self) -> float:
        """Монотонные часы в секундах"""
        return time.monotonic()

    @abstractmethod
    def wait(self, ms: float) -> None:
        """Кооперативное ожидание: страница продолжает жить"""

    @abstractmethod
    def sample_snapshot(self) -> Optional[PlayerSnapshot]:
        pass

    @abstractmethod
    def dispatch_play(self) -> None:
        pass

    @abstractmethod
    def dispatch_pause(self) -> None:
        pass

    @abstractmethod
    def is_ad_overlay_active(self) -> bool:
        pass

    @abstractmethod
    def find_visible(self, selector: str) -> Optional[Any]:
        """Хэндл видимого элемента или None"""

    @abstractmethod
    def click(self, handle: Any, force: bool = False, timeout_ms: float = 300) -> bool:
        pass

    @abstractmethod
    def bounding_box(self, selector: str) -> Optional[Dict[str, float]]:
        pass

    @abstractmethod
    def hover(self, x: float, y: float) -> None:
        pass

    @abstractmethod
    def pointer_click_at(self, x: float, y: float) -> None:
        pass

    @abstractmethod
    def set_position(self, seconds: float, confirm_event: str = "seeked", timeout_ms: float = 4000) -> bool:
        """Устанавливает позицию и ждёт событие или таймаут; True если событие пришло"""

    @abstractmethod
    def wait_for_event(self, event_name: str, timeout_ms: float) -> bool:
        pass

    @abstractmethod
    def capture_screenshot(self, path: Path) -> bool:
        pass


class PlaywrightPlayerSession(PlayerSession):
    """Реализация сессии поверх playwright.sync_api.Page"""

    def __init__(
        self,
        page: Page,
        selectors: Optional[Dict[str, str]] = None,
        ad_classes: Sequence[str] = config.AD_STATE_CLASSES,
    ):
        self.page = page
        self.selectors = {**config.SELECTORS, **(selectors or {})}
        self.ad_classes = list(ad_classes)

    @property
    def video_selector(self) -> str:
        return self.selectors["video_element"]

    @property
    def player_selector(self) -> str:
        return self.selectors["player"]

    def _evaluate(self, script: str, arg: Any = None) -> Any:
        try:
            return self.page.evaluate(script, arg)
        except PlaywrightError as e:
            raise CollaboratorFault(f"Ошибка выполнения скрипта на странице: {e}", cause=e) from e

    # === Ядро ===
    def wait(self, ms: float) -> None:
        self.page.wait_for_timeout(ms)

    def sample_snapshot(self) -> Optional[PlayerSnapshot]:
        data = self._evaluate(JS_STATE, {
            "video": self.video_selector,
            "player": self.player_selector,
            "adClasses": self.ad_classes,
        })
        return PlayerSnapshot.from_dict(data) if data else None

    def dispatch_play(self) -> None:
        try:
            self.page.evaluate(JS_PLAY, self.video_selector)
        except PlaywrightError as e:
            logger.warning(f"[PLAYER] Команда play не выполнена: {e}")

    def dispatch_pause(self) -> None:
        try:
            self.page.evaluate(JS_PAUSE, self.video_selector)
        except PlaywrightError as e:
            logger.warning(f"[PLAYER] Команда pause не выполнена: {e}")

    def is_ad_overlay_active(self) -> bool:
        return bool(self._evaluate(JS_AD_ACTIVE, {
            "player": self.player_selector,
            "adClasses": self.ad_classes,
        }))

    def find_visible(self, selector: str) -> Optional[Locator]:
        locator = self.page.locator(selector).first
        try:
            return locator if locator.is_visible() else None
        except PlaywrightError as e:
            raise CollaboratorFault(f"Не удалось проверить видимость {selector}: {e}", cause=e) from e

    def click(self, handle: Locator, force: bool = False, timeout_ms: float = 300) -> bool:
        try:
            handle.click(timeout=timeout_ms, force=force)
            return True
        except PlaywrightError as e:
            logger.debug(f"[PLAYER] Клик не прошёл (force={force}): {e}")
            return False

    def bounding_box(self, selector: str) -> Optional[Dict[str, float]]:
        try:
            return self.page.locator(selector).first.bounding_box()
        except PlaywrightError as e:
            raise CollaboratorFault(f"Не удалось получить размеры {selector}: {e}", cause=e) from e

    def hover(self, x: float, y: float) -> None:
        try:
            self.page.mouse.move(x, y)
        except PlaywrightError as e:
            raise CollaboratorFault(f"Не удалось навести курсор в ({x:.0f}, {y:.0f}): {e}", cause=e) from e

    def pointer_click_at(self, x: float, y: float) -> None:
        try:
            self.page.mouse.click(x, y)
        except PlaywrightError as e:
            raise CollaboratorFault(f"Не удалось кликнуть в ({x:.0f}, {y:.0f}): {e}", cause=e) from e

    def set_position(self, seconds: float, confirm_event: str = "seeked", timeout_ms: float = 4000) -> bool:
        """Гонка события confirm_event против таймаута; True если событие пришло"""
        armed = self._evaluate(JS_ARM_EVENT, {"sel": self.video_selector, "eventName": confirm_event})
        if not armed:
            return False
        self._evaluate(JS_SET_TIME, {"sel": self.video_selector, "target": seconds})
        return self.wait_for_event(confirm_event, timeout_ms)

    def wait_for_event(self, event_name: str, timeout_ms: float) -> bool:
        return bool(self._evaluate(JS_WAIT_EVENT, {
            "sel": self.video_selector,
            "eventName": event_name,
            "timeout": timeout_ms,
        }))

    def capture_screenshot(self, path: Path) -> bool:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.page.screenshot(path=str(path))
        return path.exists()

    # === Навигация сценария ===
    def open_home(self, url: str = config.BASE_URL) -> None:
        self.page.goto(url, wait_until="domcontentloaded")

    def accept_consent(self, timeout_ms: float = config.TIMEOUTS["consent_visible"]) -> bool:
        """Принимает баннер cookies, если он есть"""
        button = self.page.locator(config.CONSENT_BUTTONS).first
        try:
            button.wait_for(state="visible", timeout=timeout_ms)
            button.click()
            return True
        except PlaywrightError:
            return False

    def search(self, term: str) -> int:
        """Вводит запрос и возвращает количество карточек в выдаче"""
        search = self.page.locator(self.selectors["search_input"]).first
        search.wait_for(state="visible", timeout=config.TIMEOUTS["search_visible"])
        search.fill(term)
        search.press("Enter")
        self.page.wait_for_selector(self.selectors["search_result"], timeout=config.TIMEOUTS["search_results"])
        return self.page.locator(self.selectors["search_result"]).count()

    def open_first_video_result(self) -> Optional[int]:
        """Открывает первый нерекламный ролик по ссылке заголовка, возвращает его индекс"""
        items = self.page.locator(self.selectors["search_result"])
        for i in range(items.count()):
            item = items.nth(i)
            if item.locator(config.SEARCH_RESULT_AD_MARKERS).count() > 0:
                continue
            title_link = item.locator(self.selectors["result_title_link"])
            if title_link.is_visible():
                title_link.click()
                self.page.wait_for_url(
                    re.compile(config.WATCH_URL_PATTERN),
                    timeout=config.TIMEOUTS["watch_navigation"],
                )
                self.page.wait_for_load_state("domcontentloaded")
                return i
        return None

    def wait_for_video_attached(self) -> None:
        self.page.locator(self.video_selector).first.wait_for(
            state="attached", timeout=config.TIMEOUTS["video_attached"]
        )

    def wait_for_metadata(self, timeout_ms: float = config.TIMEOUTS["metadata"]) -> bool:
        try:
            self.page.wait_for_function(JS_METADATA_READY, arg=self.video_selector, timeout=timeout_ms)
            return True
        except PlaywrightTimeoutError:
            return False

    def read_title(self) -> str:
        title = self.page.locator(self.selectors["video_title"]).first
        title.wait_for(state="visible", timeout=config.TIMEOUTS["title_visible"])
        return title.inner_text().strip()


@contextmanager
def launch_session(
    playwright: Playwright,
    browser_type: str = "chromium",
    headless: bool = True,
    slow_mo: float = 0,
    viewport: Optional[Dict[str, int]] = None,
) -> Iterator[PlaywrightPlayerSession]:
    """
    Запускает браузер, контекст и страницу на весь сценарий.
    Браузер закрывается на любом пути выхода, в том числе при провале проверок.
    """
    if browser_type not in config.BROWSERS:
        raise ValueError(f"Неподдерживаемый браузер: {browser_type}")

    launch_args: Dict[str, Any] = {"headless": headless, "slow_mo": slow_mo}
    if browser_type == "chromium" and config.CHROMIUM_PATH:
        launch_args["executable_path"] = config.CHROMIUM_PATH

    browser = getattr(playwright, browser_type).launch(**launch_args)
    try:
        context = browser.new_context(viewport=viewport or config.VIEWPORT)
        try:
            page = context.new_page()
            yield PlaywrightPlayerSession(page)
        finally:
            context.close()
    finally:
        browser.close()
