import json
from types import SimpleNamespace

import pytest

from player.scenario import ScenarioMetrics
from player.seek import SeekMethod, SeekResult
from utils.log_issues import log_issues_if_any
from utils.report_builder import build_scenario_report, enrich_step, save_report


@pytest.fixture
def context():
    seek = SeekResult(before=20.0, target=30.0, after=30.2, method=SeekMethod.PROGRAMMATIC,
                      advanced=True, event_fired=True)
    return SimpleNamespace(
        search_term="QA Automation",
        data={"seek": seek, "screenshot": "screenshots/screenshot-1.png", "title": "QA Automation Tutorial"},
    )


@pytest.fixture
def metrics():
    m = ScenarioMetrics()
    m.add_metric("playback", "playbackStarted", True)
    m.add_metric("playback", "contentReady", True)
    m.add_metric("pause", "pauseHeld", True)
    m.add_metric("pause", "pauseMaxDrift", 0.0)
    m.add_metric("resume", "resumed", True)
    return m


def test_step_status():
    assert enrich_step("search", {"success": False})["status"] == "failed"
    assert enrich_step("playback", {"success": False, "cancelled": True})["status"] == "cancelled"
    assert enrich_step("preroll_ads", {"adCleared": False})["status"] == "warning"
    assert enrich_step("seek", {"method": "ui_fallback"})["status"] == "warning"
    assert enrich_step("seek", {"method": "programmatic"})["status"] == "passed"


def test_report_collects_flow_flags(metrics, context):
    report = build_scenario_report(metrics, context)

    assert report["test_name"] == "watch_flow"
    assert report["test_run"]["search_term"] == "QA Automation"
    assert all(report["user_flow"].values())
    assert report["seek"]["method"] == "programmatic"
    assert report["seek"]["delta"] == pytest.approx(10.2)
    assert not report["is_problematic_flow"]
    assert report["error"] is None


def test_report_without_seek_marks_flow_incomplete(metrics):
    report = build_scenario_report(metrics, SimpleNamespace(search_term="x", data={}))

    assert report["user_flow"]["seek_advanced"] is False
    assert report["user_flow"]["screenshot_saved"] is False
    assert report["seek"] is None


def test_warnings_make_flow_problematic(metrics, context):
    metrics.add_warning("Warning: Content not fully ready before seek.")

    report = build_scenario_report(metrics, context)

    assert report["is_problematic_flow"]
    assert not metrics.is_problematic


def test_save_report_writes_json(metrics, context, tmp_path):
    report = build_scenario_report(metrics, context)

    path = save_report(report, str(tmp_path / "reports"))

    assert path.name.startswith("report_watch_flow_")
    saved = json.loads(path.read_text(encoding="utf-8"))
    assert saved["title"] == "QA Automation Tutorial"


def test_clean_report_logs_nothing(metrics, context, tmp_path):
    log_path = tmp_path / "issues.log"

    assert not log_issues_if_any(build_scenario_report(metrics, context), log_path=str(log_path))
    assert not log_path.exists()


def test_issues_are_appended(metrics, context, tmp_path):
    log_path = tmp_path / "logs" / "issues.log"
    metrics.add_metric("preroll_ads", "adCleared", False)
    metrics.add_metric("pause", "pauseMaxDrift", 1.4)
    metrics.add_metric("seek", "method", "ui_fallback")
    metrics.add_error("Step 'Перемотать вперёд' failed")
    report = build_scenario_report(metrics, context)

    assert log_issues_if_any(report, log_path=str(log_path))
    log_issues_if_any(report, log_path=str(log_path))

    lines = log_path.read_text(encoding="utf-8").splitlines()
    assert "watch_flow[QA Automation] | preroll_ads.adCleared = False" in lines
    assert "watch_flow[QA Automation] | pause.pauseMaxDrift = 1.4" in lines
    assert "watch_flow[QA Automation] | seek.method = ui_fallback" in lines
    assert any(" | error = " in line for line in lines)
    assert len(lines) == 8
