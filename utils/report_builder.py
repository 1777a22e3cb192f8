import json
import time
from datetime import datetime
from pathlib import Path

import allure

import config


def enrich_step(step_name: str, metrics: dict) -> dict:
    """Обогащает метрики шага статусом"""
    base = dict(metrics)
    if metrics.get("cancelled"):
        base["status"] = "cancelled"
    elif not metrics.get("success", True):
        base["status"] = "failed"
    elif metrics.get("contentReady") is False or metrics.get("adCleared") is False:
        base["status"] = "warning"
        base["reason"] = "Реклама или метаданные не успели смениться основным контентом"
    elif step_name == "seek" and metrics.get("method") == "ui_fallback":
        base["status"] = "warning"
        base["reason"] = "Программная перемотка не сработала, использован клик по прогресс-бару"
    else:
        base["status"] = "passed"
    return base


def build_scenario_report(metrics, context) -> dict:
    """Собирает итоговый отчёт по сценарию из метрик шагов и данных контекста"""
    steps = {name: enrich_step(name, values) for name, values in metrics.step_metrics.items()}
    seek = context.data.get("seek")

    def step_flag(step: str, name: str):
        return metrics.step_metrics.get(step, {}).get(name)

    return {
        "test_name": "watch_flow",
        "test_run": {
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%S%z"),
            "base_url": config.BASE_URL,
            "search_term": context.search_term,
        },
        "user_flow": {
            "video_started": step_flag("playback", "playbackStarted") is True,
            "pause_verified": step_flag("pause", "pauseHeld") is True,
            "resumed": step_flag("resume", "resumed") is True,
            "seek_advanced": seek.advanced if seek is not None else False,
            "screenshot_saved": "screenshot" in context.data,
            "title_present": bool(context.data.get("title")),
        },
        "seek": seek.to_dict() if seek is not None else None,
        "screenshot": context.data.get("screenshot"),
        "title": context.data.get("title"),
        "steps": steps,
        "errors": list(metrics.errors),
        "warnings": list(metrics.warnings),
        "is_problematic_flow": metrics.is_problematic or bool(metrics.warnings),
        "cancelled": metrics.cancelled,
        "error": metrics.errors[-1] if metrics.errors else None,
    }


def save_report(report: dict, reports_dir: str = config.REPORTS_DIR) -> Path:
    """Сохраняет отчёт в JSON и прикрепляет его к Allure"""
    Path(reports_dir).mkdir(parents=True, exist_ok=True)
    filename = f"report_{report.get('test_name', 'unknown')}_{datetime.now().strftime('%Y%m%d_%H%M%S')}.json"
    path = Path(reports_dir) / filename

    with open(path, "w", encoding="utf-8") as f:
        json.dump(report, f, indent=2, ensure_ascii=False, default=str)

    allure.attach.file(str(path), name="Test Report", extension="json")
    return path
