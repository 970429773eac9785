"""Pytest configuration and shared fixtures."""

import pytest

from dispatch.application.locks import KeyedLock, RunGuard
from dispatch.application.notifications import NotificationOutbox
from fakes import FakeNotificationSink, FakeUnitOfWork


@pytest.fixture
def outbox():
    return NotificationOutbox()


@pytest.fixture
def notifications():
    return FakeNotificationSink()


@pytest.fixture
def ticket_locks():
    return KeyedLock()


@pytest.fixture
def agent_locks():
    return KeyedLock()


@pytest.fixture
def run_guard():
    return RunGuard()


@pytest.fixture
def uow():
    return FakeUnitOfWork()
