import os
from dataclasses import dataclass, field
from typing import Any
from unittest.mock import Mock

import pytest

from merkledrop.config import load_conf
from merkledrop.models import Config
from merkledrop.queries import Clients, RateLimiter

STUBS = os.path.join(os.path.dirname(__file__), "stubs")


@pytest.fixture
def config(tmp_path) -> Config:
    conf = load_conf(os.path.join(STUBS, "config"))
    # never write reports into the repo from a test
    return conf.model_copy(
        update={
            "db_path": str(tmp_path / "distributions-db.json"),
            "output_dir": str(tmp_path / "reports"),
        }
    )


@pytest.fixture()
def ADDRESSES():
    return [
        "0x9bc33f6155efacc290c3c50e9b5b24b668562732",
        "0xfde38ad4bbbec867e6cb4bb31fbfb2074c959a83",
        "0x8bb4c0b502f869af3b25166930507a6e8c3038d4",
        "0x7ac54a0406fa2b465e0d57c66597be83a4b149fc",
        "0xdea708968f8dd520f5e2f0ab6785f28c98521ca8",
    ]


@pytest.fixture
def clients() -> Clients:
    return Clients(w3=Mock(), limiter=RateLimiter(4), session=Mock())


@dataclass
class MockResponse:
    res: Any
    status_code: int = 200
    headers: dict[str, str] = field(default_factory=dict)

    def json(self):
        if isinstance(self.res, Exception):
            raise self.res
        return self.res

    def raise_for_status(self):
        pass


LIVE_CALLS_DISABLED = os.environ.get("PYTEST_LIVE_CALLS_ENABLED") != "TRUE"
SKIP_REASON = (
    "API Calls disabled: set PYTEST_LIVE_CALLS_ENABLED=TRUE in .env to run this test"
)
