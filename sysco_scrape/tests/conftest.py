"""Shared pytest fixtures."""

from typing import List

import pytest

from sysco_scrape.config import DelaySettings, ScraperConfig
from sysco_scrape.db import close_db, init_db
from sysco_scrape.session import ScrapeSession

from fakes import FakeDriver


@pytest.fixture(autouse=True)
def _close_connections():
    yield
    close_db()


@pytest.fixture
def db_path(tmp_path) -> str:
    path = str(tmp_path / "sysco_test.db")
    init_db(path)
    return path


@pytest.fixture
def config(tmp_path, db_path) -> ScraperConfig:
    """No waits, two retries, three categories."""
    return ScraperConfig(
        db_path=db_path,
        output_dir=str(tmp_path / "out"),
        log_dir=str(tmp_path / "logs"),
        max_retries=2,
        retry_base_delay=0.5,
        delays=DelaySettings.none(),
        categories=["Produce", "Dairy & Eggs", "Beverages"],
    )


@pytest.fixture
def sleeps() -> List[float]:
    """Every duration passed to the fake sleep."""
    return []


@pytest.fixture
def fake_sleep(sleeps):
    async def _sleep(seconds: float) -> None:
        sleeps.append(seconds)
    return _sleep


@pytest.fixture
def driver() -> FakeDriver:
    return FakeDriver()


@pytest.fixture
def session(config, driver, fake_sleep) -> ScrapeSession:
    return ScrapeSession(config=config, driver=driver, sleep=fake_sleep)
