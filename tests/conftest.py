"""Общие фикстуры: фейковый gateway, настройки по умолчанию, контроллер."""

import pytest

from joinbell_bot.controller import RecruitmentController
from joinbell_bot.settings import RecruitSettings

from tests.fakes import FakeGateway, RecordingScheduler


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def settings():
    return RecruitSettings()


@pytest.fixture
def scheduler():
    return RecordingScheduler()


@pytest.fixture
def controller(gateway, settings, scheduler):
    return RecruitmentController(gateway, settings, scheduler=scheduler)
