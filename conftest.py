"""
CONFTEST.PY - КОНФИГУРАЦИЯ PYTEST ДЛЯ ПРОВЕРКИ ВИДЕОПЛЕЕРА

Этот файл содержит опции командной строки, фикстуры управления браузером
через Playwright и хуки для скриншотов при падении и окружения Allure.
"""

import time
from pathlib import Path
from typing import Dict

import allure
import pytest
from playwright.sync_api import sync_playwright

import config
from player.session import launch_session


def pytest_addoption(parser: pytest.Parser) -> None:
    """
    Добавляет пользовательские опции командной строки для pytest.

    Аргументы:
        parser: парсер pytest для добавления опций
    """
    parser.addoption(
        "--search-term",
        action="store",
        default=config.SEARCH_TERM,
        help="Поисковый запрос для выбора ролика"
    )
    parser.addoption(
        "--browser",
        action="store",
        default="chromium",
        choices=config.BROWSERS,
        help="Браузер для тестирования"
    )
    parser.addoption(
        "--headed",
        action="store_true",
        default=False,
        help="Запускать браузер с окном"
    )
    parser.addoption(
        "--slow-mo",
        action="store",
        type=float,
        default=None,
        help=f"Замедление действий в мс (по умолчанию {config.SLOW_MO_MS} в headed-режиме, иначе 0)"
    )
    parser.addoption(
        "--run-e2e",
        action="store_true",
        default=False,
        help="Запускать сквозные тесты против реального сайта"
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "e2e: сквозной тест против реального сайта, нужен --run-e2e")


def pytest_collection_modifyitems(config: pytest.Config, items) -> None:
    if config.getoption("--run-e2e"):
        return
    skip_e2e = pytest.mark.skip(reason="нужен --run-e2e")
    for item in items:
        if "e2e" in item.keywords:
            item.add_marker(skip_e2e)


# === ФИКСТУРЫ ДЛЯ ПАРАМЕТРОВ ТЕСТИРОВАНИЯ ===
@pytest.fixture
def search_term(request: pytest.FixtureRequest) -> str:
    """Возвращает поисковый запрос."""
    return request.config.getoption("--search-term")


@pytest.fixture(scope="session")
def browser_type(request: pytest.FixtureRequest) -> str:
    """Возвращает тип браузера для тестирования."""
    return request.config.getoption("--browser")


@pytest.fixture(scope="session")
def launch_options(request: pytest.FixtureRequest) -> Dict:
    """Параметры запуска браузера из командной строки."""
    headed = request.config.getoption("--headed")
    slow_mo = request.config.getoption("--slow-mo")
    if slow_mo is None:
        slow_mo = config.SLOW_MO_MS if headed else 0
    return {"headless": not headed, "slow_mo": slow_mo}


# === ФИКСТУРЫ ДЛЯ УПРАВЛЕНИЯ БРАУЗЕРОМ ===
@pytest.fixture(scope="session")
def playwright_instance():
    """Создает экземпляр Playwright для сессии тестирования."""
    with sync_playwright() as p:
        yield p


@pytest.fixture(scope="function")
def player_session(playwright_instance, browser_type, launch_options):
    """
    Сессия плеера на один сценарий: браузер, контекст и страница
    создаются перед тестом и закрываются после него при любом исходе.
    """
    with launch_session(
        playwright_instance,
        browser_type=browser_type,
        viewport=config.VIEWPORT,
        **launch_options,
    ) as session:
        yield session


# === ХУКИ ДЛЯ ОБРАБОТКИ РЕЗУЛЬТАТОВ ТЕСТОВ ===
@pytest.hookimpl(tryfirst=True, hookwrapper=True)
def pytest_runtest_makereport(item: pytest.Item, call: pytest.CallInfo):
    """Создает скриншот страницы при падении теста и прикрепляет его к Allure."""
    outcome = yield
    rep = outcome.get_result()

    if rep.when == "call" and rep.failed:
        session = item.funcargs.get("player_session") if hasattr(item, "funcargs") else None
        page = getattr(session, "page", None)
        if page:
            try:
                allure.attach(
                    page.screenshot(),
                    name="screenshot",
                    attachment_type=allure.attachment_type.PNG
                )
            except Exception as e:
                print(f"[WARN] Скриншот не сохранён: {e}")


_start_time = None


def pytest_sessionstart(session):
    global _start_time
    _start_time = time.time()


def pytest_sessionfinish(session, exitstatus):
    """Сохраняет параметры запуска в environment.properties для Allure."""
    env_path = Path("allure-results")
    if not env_path.exists():
        return

    env = {
        "Start time": time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(_start_time or time.time())),
        "End time": time.strftime("%Y-%m-%d %H:%M:%S"),
        "Base URL": config.BASE_URL,
        "Browser": session.config.getoption("--browser"),
        "Search term": session.config.getoption("--search-term"),
        "Exit status": int(exitstatus),
    }
    with open(env_path / "environment.properties", "w", encoding="utf-8") as f:
        for key, value in env.items():
            # Экранируем знаки = и \ в значениях (Allure требует)
            value = str(value).replace("\\", "\\\\").replace("=", "\\=")
            f.write(f"{key} = {value}\n")
