"""公共 fixture"""

import pytest

from termfling.config import Config
from termfling.host.headless import HeadlessHost
from termfling.registry import Registry
from termfling.scheduling import ManualScheduler


@pytest.fixture
def host():
    return HeadlessHost(columns=120, lines=40)


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def settings():
    return Config()


@pytest.fixture
def registry(host, scheduler, settings):
    return Registry(host, scheduler=scheduler, settings=settings)
