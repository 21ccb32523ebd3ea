from __future__ import annotations

import pytest

from fakes import SERVER_EXT_REPLY
from tile38_exporter.utils import metrics


@pytest.fixture(autouse=True)
def _fresh_metrics_registry():
    metrics.reset_registry()
    yield
    metrics.reset_registry()


@pytest.fixture
def server_ext_reply() -> str:
    return SERVER_EXT_REPLY
