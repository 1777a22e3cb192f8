"""
Фейковая сессия плеера с виртуальными часами для модульных тестов ядра.

Видео "играет" только во время wait(): позиция растёт на прошедшее
виртуальное время, если плеер не на паузе, буферизован и не завис.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

import pytest

import config
from player.errors import CollaboratorFault
from player.session import PlayerSession
from player.snapshot import PlayerSnapshot


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, ms: float) -> None:
        self.sleeps.append(ms)
        self.now += ms / 1000.0


@dataclass
class FakeButton:
    selector: str
    interactive: bool = True
    clear_delay_s: float = 0.5
    clicks: int = 0
    forced_clicks: int = 0


class FakePlayerSession(PlayerSession):
    def __init__(
        self,
        position: float = 0.0,
        duration: float = 600.0,
        paused: bool = True,
        ready_level: int = 4,
    ):
        self.now = 0.0
        self.position = position
        self.duration = duration
        self.paused = paused
        self.ready_level = ready_level
        self.stalled = False
        self.video_present = True
        self.autoplay_blocked = 0
        self.pause_at: Optional[float] = None

        self.ad_until = 0.0
        self.ad_clip_duration = 15.0
        self.skip_buttons: Dict[str, FakeButton] = {}

        self.seek_applies = True
        self.seek_emits_event = True
        self.player_box: Optional[Dict[str, float]] = {"x": 0, "y": 0, "width": 1280, "height": 720}
        self.progress_bar_box: Optional[Dict[str, float]] = {"x": 100, "y": 650, "width": 1000, "height": 10}

        self.faults_on_sample = 0
        self.play_calls = 0
        self.pause_calls = 0
        self.hovers: List[tuple] = []
        self.clicks_at: List[tuple] = []
        self.waits: List[float] = []
        self.set_positions: List[float] = []

        self.consent_shown = True
        self.result_count = 5
        self.first_video_index: Optional[int] = 0
        self.metadata_ready = True
        self.title = "QA Automation Tutorial"
        self.screenshot_ok = True
        self.visited: List[str] = []

    # --- виртуальное время ---
    @property
    def playing(self) -> bool:
        return not self.paused and self.ready_level >= 3 and not self.stalled

    @property
    def ad_active(self) -> bool:
        return self.now < self.ad_until

    def _advance(self, seconds: float) -> None:
        if self.playing:
            self.position += seconds
            if self.duration != float("inf"):
                self.position = min(self.position, self.duration)
        self.now += seconds
        if self.pause_at is not None and self.now >= self.pause_at:
            self.paused = True
            self.pause_at = None

    def clock(self) -> float:
        return self.now

    def wait(self, ms: float) -> None:
        self.waits.append(ms)
        self._advance(ms / 1000.0)

    # --- ядро ---
    def sample_snapshot(self) -> Optional[PlayerSnapshot]:
        if self.faults_on_sample > 0:
            self.faults_on_sample -= 1
            raise CollaboratorFault("Execution context was destroyed")
        if not self.video_present:
            return None
        return PlayerSnapshot(
            paused=self.paused,
            ready_level=self.ready_level,
            position=self.position,
            duration=self.ad_clip_duration if self.ad_active else self.duration,
            ad_active=self.ad_active,
        )

    def dispatch_play(self) -> None:
        self.play_calls += 1
        if self.autoplay_blocked > 0:
            self.autoplay_blocked -= 1
            return
        self.paused = False

    def dispatch_pause(self) -> None:
        self.pause_calls += 1
        self.paused = True

    def is_ad_overlay_active(self) -> bool:
        return self.ad_active

    def add_skip_button(self, selector: str, interactive: bool = True, clear_delay_s: float = 0.5) -> FakeButton:
        button = FakeButton(selector, interactive=interactive, clear_delay_s=clear_delay_s)
        self.skip_buttons[selector] = button
        return button

    def find_visible(self, selector: str):
        if selector == config.SELECTORS["progress_bar"]:
            return "progress_bar" if self.progress_bar_box else None
        if self.ad_active and selector in self.skip_buttons:
            return self.skip_buttons[selector]
        return None

    def click(self, handle, force: bool = False, timeout_ms: float = 300) -> bool:
        if not isinstance(handle, FakeButton):
            return False
        if force:
            handle.forced_clicks += 1
        else:
            handle.clicks += 1
            if not handle.interactive:
                return False
        self.ad_until = min(self.ad_until, self.now + handle.clear_delay_s)
        return True

    def bounding_box(self, selector: str) -> Optional[Dict[str, float]]:
        if selector == config.SELECTORS["player"]:
            return self.player_box
        if selector == config.SELECTORS["progress_bar"]:
            return self.progress_bar_box
        return None

    def hover(self, x: float, y: float) -> None:
        self.hovers.append((x, y))

    def pointer_click_at(self, x: float, y: float) -> None:
        self.clicks_at.append((x, y))
        bar = self.progress_bar_box
        if bar and bar["x"] <= x <= bar["x"] + bar["width"] and self.duration != float("inf"):
            self.position = (x - bar["x"]) / bar["width"] * self.duration

    def set_position(self, seconds: float, confirm_event: str = "seeked", timeout_ms: float = 4000) -> bool:
        self.set_positions.append(seconds)
        if self.seek_applies:
            self.position = seconds
        return self.wait_for_event(confirm_event, timeout_ms)

    def wait_for_event(self, event_name: str, timeout_ms: float) -> bool:
        if event_name == "seeked" and self.seek_emits_event:
            return True
        self._advance(timeout_ms / 1000.0)
        return False

    def capture_screenshot(self, path: Path) -> bool:
        if not self.screenshot_ok:
            return False
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"\x89PNG\r\n\x1a\n")
        return True

    # --- навигация сценария ---
    def open_home(self, url: str = config.BASE_URL) -> None:
        self.visited.append(url)

    def accept_consent(self, timeout_ms: float = 0) -> bool:
        return self.consent_shown

    def search(self, term: str) -> int:
        self.visited.append(f"search:{term}")
        return self.result_count

    def open_first_video_result(self) -> Optional[int]:
        return self.first_video_index

    def wait_for_video_attached(self) -> None:
        if not self.video_present:
            raise CollaboratorFault("video element not attached")

    def wait_for_metadata(self, timeout_ms: float = 0) -> bool:
        return self.metadata_ready

    def read_title(self) -> str:
        return self.title


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_session():
    def factory(**kwargs) -> FakePlayerSession:
        return FakePlayerSession(**kwargs)
    return factory


@pytest.fixture
def session(make_session) -> FakePlayerSession:
    return make_session()
