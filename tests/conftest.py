"""Shared fixtures."""

import pytest

from fakes import FakeGateway, make_memo
from memosync.config.schema import Config, SyncConfig


@pytest.fixture
def memos_45():
    return [make_memo(i, "work/proj" if i % 2 else "life") for i in range(1, 46)]


@pytest.fixture
def gateway(memos_45):
    return FakeGateway(memos_45)


@pytest.fixture
def config():
    return Config(sync=SyncConfig(page_size=30, debounce_ms=50, save_timeout_s=None))
