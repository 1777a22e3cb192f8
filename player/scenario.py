"""
Сценарий проверки плеера: поиск → открытие ролика → реклама → воспроизведение →
пауза → возобновление → перемотка → скриншот → заголовок.

Шаги выполняются строго последовательно. Обязательный шаг при провале
прерывает сценарий, необязательный оставляет предупреждение.
"""
import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

import allure

import config
from utils.log_issues import log_issues_if_any
from utils.report_builder import build_scenario_report, save_report
from .ad_skipper import AdSkipper
from .errors import ScenarioCancelled, ScenarioFailure
from .playback import PauseVerifier, PlaybackEnsurer
from .poller import ConditionPoller
from .readiness import ContentReadinessGate
from .seek import SeekCoordinator
from .snapshot import StateSampler

logger = logging.getLogger(__name__)


class FlowStep(Enum):
    """Шаги пользовательского флоу"""
    HOME_PAGE = "home_page"
    SEARCH = "search"
    OPEN_VIDEO = "open_video"
    VIDEO_ATTACHED = "video_attached"
    PREROLL_ADS = "preroll_ads"
    PLAYBACK = "playback"
    PAUSE = "pause"
    RESUME = "resume"
    SEEK = "seek"
    SCREENSHOT = "screenshot"
    TITLE = "title"


@dataclass
class ScenarioMetrics:
    """Контейнер для метрик сценария"""
    step_metrics: Dict[str, Dict] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    is_problematic: bool = False
    cancelled: bool = False

    def add_metric(self, step: str, metric_name: str, value: Any):
        """Добавление метрики для шага"""
        if step not in self.step_metrics:
            self.step_metrics[step] = {}
        self.step_metrics[step][metric_name] = value

    def add_error(self, error: str):
        """Добавление ошибки"""
        self.errors.append(f"{datetime.now().isoformat()}: {error}")
        self.is_problematic = True

    def add_warning(self, warning: str):
        logger.warning(warning)
        self.warnings.append(f"{datetime.now().isoformat()}: {warning}")


@dataclass
class ScenarioContext:
    """Всё, что нужно шагам: сессия, компоненты ядра и накопленные данные"""
    session: Any
    search_term: str
    metrics: ScenarioMetrics
    sampler: StateSampler
    ad_skipper: AdSkipper
    playback: PlaybackEnsurer
    pause: PauseVerifier
    content_gate: ContentReadinessGate
    seeker: SeekCoordinator
    screenshots_dir: Path
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        session,
        search_term: str = config.SEARCH_TERM,
        screenshots_dir: Path = Path(config.SCREENSHOTS_DIR),
        cancel_event: Optional[threading.Event] = None,
    ) -> "ScenarioContext":
        poller = ConditionPoller.for_session(session, cancel_event=cancel_event)
        sampler = StateSampler(session)
        ad_skipper = AdSkipper(session, poller=poller)
        return cls(
            session=session,
            search_term=search_term,
            metrics=ScenarioMetrics(),
            sampler=sampler,
            ad_skipper=ad_skipper,
            playback=PlaybackEnsurer(session, poller=poller, sampler=sampler),
            pause=PauseVerifier(session, sampler=sampler),
            content_gate=ContentReadinessGate(session, ad_skipper=ad_skipper, poller=poller, sampler=sampler),
            seeker=SeekCoordinator(session, sampler=sampler),
            screenshots_dir=Path(screenshots_dir),
        )

    def guard_content(self, label: str) -> bool:
        """Необязательная проверка контента: неудача - только предупреждение"""
        ready = self.content_gate.ensure_content_ready()
        if not ready:
            self.metrics.add_warning(f"Warning: Content not fully ready {label}.")
        return ready


def require(condition: bool, message: str) -> None:
    if not condition:
        raise ScenarioFailure(message)


class BaseScenarioStep(ABC):
    """Базовый класс для шага сценария"""

    def __init__(self, name: str, step: FlowStep, required: bool = True):
        self.name = name
        self.step = step
        self.required = required

    @abstractmethod
    def execute(self, ctx: ScenarioContext) -> Dict:
        """Выполнение шага"""
        pass

    def run(self, ctx: ScenarioContext) -> Dict:
        """Выполнение шага с учётом его обязательности"""
        started = time.monotonic()
        try:
            with allure.step(self.name):
                result = self.execute(ctx) or {}
            result.setdefault("success", True)
        except ScenarioCancelled as e:
            ctx.metrics.cancelled = True
            ctx.metrics.add_warning(f"Step '{self.name}' cancelled: {e}")
            self._record(ctx, {"success": False, "cancelled": True}, started)
            raise
        except Exception as e:
            error_msg = f"Step '{self.name}' failed: {e}"
            result = {"success": False, "error": str(e)}
            if self.required:
                ctx.metrics.add_error(error_msg)
                self._record(ctx, result, started)
                raise
            ctx.metrics.add_warning(error_msg)
        self._record(ctx, result, started)
        logger.info(f"[STEP] {self.step.value}: {'OK' if result['success'] else 'FAILED'}")
        return result

    def _record(self, ctx: ScenarioContext, result: Dict, started: float):
        for name, value in result.items():
            ctx.metrics.add_metric(self.step.value, name, value)
        ctx.metrics.add_metric(self.step.value, "durationMs", round((time.monotonic() - started) * 1000))


class UserFlowBuilder:
    """Строитель пользовательского флоу"""

    def __init__(self):
        self.steps: List[BaseScenarioStep] = []

    def add_step(self, step: BaseScenarioStep):
        """Добавление шага"""
        self.steps.append(step)
        return self

    def build(self) -> List[BaseScenarioStep]:
        """Построение флоу"""
        return list(self.steps)


# Конкретные шаги сценария
class OpenHomePageStep(BaseScenarioStep):
    def execute(self, ctx: ScenarioContext) -> Dict:
        ctx.session.open_home()
        consent = ctx.session.accept_consent()
        if consent:
            logger.info("Consent banner accepted.")
        return {"consentAccepted": consent}


class SearchStep(BaseScenarioStep):
    def execute(self, ctx: ScenarioContext) -> Dict:
        count = ctx.session.search(ctx.search_term)
        require(count > 0, "Expected at least one search result.")
        logger.info(f"Found {count} video results.")
        return {"searchTerm": ctx.search_term, "resultCount": count}


class OpenVideoStep(BaseScenarioStep):
    def execute(self, ctx: ScenarioContext) -> Dict:
        index = ctx.session.open_first_video_result()
        require(index is not None, "Failed to click a non-ad video result.")
        logger.info(f"Clicked title of non-ad video #{index + 1}.")
        return {"resultIndex": index}


class VideoAttachedStep(BaseScenarioStep):
    def execute(self, ctx: ScenarioContext) -> Dict:
        ctx.session.wait_for_video_attached()
        return {}


class PrerollAdsStep(BaseScenarioStep):
    def execute(self, ctx: ScenarioContext) -> Dict:
        cleared = ctx.ad_skipper.skip_ads_if_any()
        return {"adCleared": cleared, "skipClickedVia": ctx.ad_skipper.clicked_via}


class StartPlaybackStep(BaseScenarioStep):
    def execute(self, ctx: ScenarioContext) -> Dict:
        require(ctx.session.wait_for_metadata(), "Expected video metadata to load.")
        require(ctx.playback.ensure_playing(), "Expected playback to start.")

        content_ready = ctx.guard_content("but proceeding")
        # после пропуска рекламы воспроизведение нужно подтвердить заново
        require(ctx.playback.ensure_playing(), "Expected playback to be active before pause.")
        ctx.session.wait(config.PLAY_BEFORE_PAUSE_MS)
        return {"playbackStarted": True, "contentReady": content_ready}


class PauseStep(BaseScenarioStep):
    def execute(self, ctx: ScenarioContext) -> Dict:
        initial = ctx.pause.pause_and_verify(config.PAUSE_CHECK_MS)
        require(initial.stable, "Video should be paused (no time progress).")
        logger.info(f"Holding pause for {config.PAUSE_HOLD_MS}ms to observe…")

        held = ctx.pause.hold(config.PAUSE_HOLD_MS, sample_every_ms=config.PAUSE_SAMPLE_EVERY_MS)
        require(held.stable, "Video should still be paused after hold.")
        return {
            "pauseStable": initial.stable,
            "pauseHeld": held.stable,
            "pausePositions": initial.positions + held.positions[1:],
            "pauseMaxDrift": round(max(initial.max_drift, held.max_drift), 3),
        }


class ResumeStep(BaseScenarioStep):
    def execute(self, ctx: ScenarioContext) -> Dict:
        resumed = ctx.playback.ensure_playing(
            max_wait_ms=config.TIMEOUTS["resume_playing"],
            interval_ms=config.TIMEOUTS["resume_playing_interval"],
        )
        require(resumed, "Expected playback to resume before seek.")
        ctx.session.wait(config.PLAY_BEFORE_SEEK_MS)
        return {"resumed": resumed}


class SeekStep(BaseScenarioStep):
    def __init__(self, name: str, step: FlowStep, jump_seconds: float = config.SEEK_JUMP_SECONDS):
        super().__init__(name, step)
        self.jump_seconds = jump_seconds

    def execute(self, ctx: ScenarioContext) -> Dict:
        content_ready = ctx.guard_content("before seek")
        ctx.playback.ensure_playing()

        result = ctx.seeker.seek(self.jump_seconds)
        ctx.data["seek"] = result
        allure.attach(
            f"{result.before:.2f}s → {result.after:.2f}s ({result.method.value})",
            name="Seek",
            attachment_type=allure.attachment_type.TEXT,
        )
        require(result.advanced, f"Expected video time to advance by > {config.SEEK_MIN_ADVANCE_S:g}s after seek.")
        return {"contentReady": content_ready, "seekAdvanced": result.advanced, **result.to_dict()}


class ScreenshotStep(BaseScenarioStep):
    def execute(self, ctx: ScenarioContext) -> Dict:
        ctx.session.wait(config.INTERVAL_AFTER_SEEK_MS)
        content_ready = ctx.guard_content("before screenshot")
        ctx.playback.ensure_playing()
        ctx.session.wait(config.FRESH_FRAME_MS)

        path = ctx.screenshots_dir / f"screenshot-{int(time.time() * 1000)}.png"
        saved = ctx.session.capture_screenshot(path)
        require(saved and path.exists(), "Expected screenshot file to exist.")
        ctx.data["screenshot"] = str(path)
        allure.attach.file(str(path), name="screenshot", attachment_type=allure.attachment_type.PNG)
        logger.info(f"Screenshot saved: {path}")
        return {"contentReady": content_ready, "screenshotSaved": saved, "path": str(path)}


class TitleStep(BaseScenarioStep):
    def execute(self, ctx: ScenarioContext) -> Dict:
        title = ctx.session.read_title()
        logger.info(f'Title: "{title}"')
        require(len(title) > 0, "Expected non-empty video title.")
        ctx.data["title"] = title
        return {"title": title}


class ScenarioRunner:
    """Оркестратор сценария: выполняет шаги и сохраняет отчёт на любом исходе"""

    def __init__(
        self,
        session,
        search_term: str = config.SEARCH_TERM,
        reports_dir: str = config.REPORTS_DIR,
        screenshots_dir: str = config.SCREENSHOTS_DIR,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.context = ScenarioContext.create(
            session, search_term=search_term, screenshots_dir=Path(screenshots_dir), cancel_event=cancel_event
        )
        self.reports_dir = reports_dir
        self.cancel_event = cancel_event
        self.flow_builder = UserFlowBuilder()
        self.report: Optional[Dict] = None
        self._setup_default_flow()

    @property
    def metrics(self) -> ScenarioMetrics:
        return self.context.metrics

    def _setup_default_flow(self):
        """Настройка стандартного флоу"""
        self.flow_builder.add_step(OpenHomePageStep("Открыть главную и принять cookies", FlowStep.HOME_PAGE))
        self.flow_builder.add_step(SearchStep("Выполнить поиск", FlowStep.SEARCH))
        self.flow_builder.add_step(OpenVideoStep("Открыть первый нерекламный ролик", FlowStep.OPEN_VIDEO))
        self.flow_builder.add_step(VideoAttachedStep("Дождаться видеоэлемента", FlowStep.VIDEO_ATTACHED))
        self.flow_builder.add_step(PrerollAdsStep("Пропустить преролл", FlowStep.PREROLL_ADS, required=False))
        self.flow_builder.add_step(StartPlaybackStep("Запустить воспроизведение", FlowStep.PLAYBACK))
        self.flow_builder.add_step(PauseStep("Пауза и удержание", FlowStep.PAUSE))
        self.flow_builder.add_step(ResumeStep("Возобновить воспроизведение", FlowStep.RESUME))
        self.flow_builder.add_step(SeekStep("Перемотать вперёд", FlowStep.SEEK))
        self.flow_builder.add_step(ScreenshotStep("Сделать скриншот", FlowStep.SCREENSHOT))
        self.flow_builder.add_step(TitleStep("Проверить заголовок", FlowStep.TITLE))

    def run(self) -> ScenarioMetrics:
        """Основной метод запуска флоу"""
        try:
            for step in self.flow_builder.build():
                if self.cancel_event is not None and self.cancel_event.is_set():
                    self.metrics.cancelled = True
                    self.metrics.add_warning(f"Scenario cancelled before step '{step.name}'")
                    break
                step.run(self.context)
            else:
                logger.info("ALL STEPS PASSED.")
        except ScenarioCancelled:
            logger.info("[STEP] Сценарий отменён во время шага")
        finally:
            self._save_report()
        return self.metrics

    def _save_report(self):
        try:
            self.report = build_scenario_report(self.metrics, self.context)
            save_report(self.report, self.reports_dir)
            log_issues_if_any(self.report, log_path=str(Path(self.reports_dir) / "issues.log"))
        except OSError as e:
            logger.warning(f"[WARN] Отчёт не сохранён: {e}")
