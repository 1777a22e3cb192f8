import config
from pathlib import Path

BINARY_METRICS = [
    "playbackStarted", "pauseStable", "pauseHeld", "resumed",
    "seekAdvanced", "screenshotSaved", "adCleared", "contentReady",
]
"""Метрики да/нет, значение False у которых считается проблемой"""


def log_issues_if_any(report: dict, log_path: str = config.ISSUES_LOG) -> bool:
    """
    Анализирует report и дописывает проблемные пункты в лог-файл.
    Вызывать после завершения сценария, в том числе упавшего.
    """
    issues = []

    test_name = report.get("test_name", "unknown_test")
    search_term = report.get("test_run", {}).get("search_term", "N/A")
    test_display = f"{test_name}[{search_term}]"

    for step_name, metrics in report.get("steps", {}).items():
        if not isinstance(metrics, dict):
            continue

        for metric_name in BINARY_METRICS:
            if metrics.get(metric_name) is False:
                issues.append(f"{test_display} | {step_name}.{metric_name} = False")

        if step_name == "seek" and metrics.get("method") == "ui_fallback":
            issues.append(f"{test_display} | seek.method = ui_fallback")

        drift = metrics.get("pauseMaxDrift")
        if drift is not None and drift >= config.PAUSE_EPSILON_S:
            issues.append(f"{test_display} | {step_name}.pauseMaxDrift = {drift}")

    for warning in report.get("warnings", []):
        issues.append(f"{test_display} | warning = {warning}")

    if report.get("error"):
        issues.append(f"{test_display} | error = {report['error']}")

    # Запись в файл (дозапись)
    if issues:
        Path(log_path).parent.mkdir(parents=True, exist_ok=True)
        with open(log_path, "a", encoding="utf-8") as f:
            for issue in issues:
                f.write(issue + "\n")

    return bool(issues)
