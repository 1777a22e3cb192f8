"""
Этот модуль содержит все конфигурационные параметры для проверки видеоплеера,
включая URL, селекторы, таймауты, пороговые значения и интервалы сценария.
"""
from typing import Dict, List, Optional, Tuple

# === Основное URL ===
BASE_URL = "https://www.youtube.com/"

# === Поисковый запрос по умолчанию ===
SEARCH_TERM = "QA Automation"

# === Путь до хромиума с кодеками, None - встроенный браузер Playwright ===
CHROMIUM_PATH: Optional[str] = None

# === КОНФИГУРАЦИЯ СЕЛЕКТОРОВ ===
SELECTORS: Dict[str, str] = {
    "player": "#movie_player",
    "video_element": "#movie_player video.html5-main-video",
    "search_input": 'input#search, input[name="search_query"]',
    "search_result": "ytd-video-renderer",
    "result_title_link": "a#video-title",
    "progress_bar": ".ytp-progress-bar",
    "video_title": "h1.ytd-watch-metadata yt-formatted-string",
}
"""Словарь CSS-селекторов для элементов интерфейса"""

SKIP_AD_SELECTORS: List[str] = [
    ".ytp-ad-skip-button-modern",
    ".ytp-ad-skip-button",
    ".ytp-skip-ad-button",
    ".ytp-ad-skip-button-container .ytp-ad-skip-button",
]
"""Варианты кнопки 'Пропустить рекламу', проверяются по порядку"""

AD_STATE_CLASSES: Tuple[str, ...] = ("ad-showing", "ad-interrupting")
"""CSS-классы плеера, означающие что сейчас показывается реклама"""

SEARCH_RESULT_AD_MARKERS = (
    "ytd-display-ad-renderer, ytd-ad-slot-renderer, .ytd-promoted-sparkles-web-renderer"
)
"""Признаки рекламной карточки в выдаче"""

CONSENT_BUTTONS = (
    'button:has-text("Accept all"), button:has-text("I agree"), button:has-text("Agree"), '
    'tp-yt-paper-button:has-text("Accept all"), tp-yt-paper-button:has-text("I agree")'
)
"""Кнопки согласия с cookies"""

WATCH_URL_PATTERN = r"/watch\?v="

# === Таймауты (мс) ===
TIMEOUTS: Dict[str, int] = {
    "consent_visible": 4000,
    "search_visible": 20000,
    "search_results": 20000,
    "watch_navigation": 30000,
    "video_attached": 20000,
    "metadata": 25000,
    "title_visible": 20000,
    "ensure_playing": 25000,
    "ensure_playing_interval": 700,
    "resume_playing": 8000,
    "resume_playing_interval": 600,
    "ad_skip": 15000,
    "ad_skip_interval": 250,
    "ad_clear": 8000,
    "skip_click": 300,
    "content_ready": 20000,
    "content_ready_interval": 300,
    "seek_event": 4000,
    "seek_fallback_settle": 800,
}
"""Таймауты ожиданий и интервалы опроса в миллисекундах"""

# === Пороги состояния плеера ===
PLAYING_READY_LEVEL = 3
"""readyState, начиная с которого видео считается воспроизводимым (HAVE_FUTURE_DATA)"""

CONTENT_READY_LEVEL = 2
"""readyState, начиная с которого доступны метаданные и текущий кадр (HAVE_CURRENT_DATA)"""

MIN_PLAYBACK_DELTA_S = 0.3
"""Минимальный прирост позиции за тик опроса, подтверждающий воспроизведение"""

MIN_CONTENT_DURATION_S = 60.0
"""Ролики короче считаются прероллом, а не основным контентом"""

PAUSE_EPSILON_S = 0.5
"""Допустимый дрейф позиции на паузе"""

SEEK_JUMP_SECONDS = 10.0
SEEK_MIN_ADVANCE_S = 5.0
"""Перемотка засчитывается, если позиция ушла вперёд больше чем на это значение"""

SEEK_FALLBACK_FRACTION = 0.7
"""Точка клика по прогресс-бару при запасном способе перемотки (доля ширины)"""

PLAYER_HOVER_OFFSET_Y = 40
"""Смещение курсора от верхнего края плеера, чтобы показать элементы управления"""

# === Интервалы сценария (мс) ===
PLAY_BEFORE_PAUSE_MS = 2000
PAUSE_CHECK_MS = 2000
PAUSE_HOLD_MS = 5000
PAUSE_SAMPLE_EVERY_MS = 2000
PLAY_BEFORE_SEEK_MS = 4000
INTERVAL_AFTER_SEEK_MS = 5000
FRESH_FRAME_MS = 1200

# === Браузер ===
BROWSERS: List[str] = ["chromium", "firefox", "webkit"]
"""Браузеры для тестирования"""

VIEWPORT: Dict[str, int] = {"width": 1280, "height": 720}
SLOW_MO_MS = 500
"""Замедление действий, чтобы за ними можно было наблюдать в headed-режиме"""

# === Отчёты ===
REPORTS_DIR = "reports"
SCREENSHOTS_DIR = "screenshots"
ISSUES_LOG = "reports/issues.log"
