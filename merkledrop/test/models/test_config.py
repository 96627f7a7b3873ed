import json
import os

import pytest
from pydantic import ValidationError

from merkledrop.config import load_conf
from merkledrop.errors import BadConfigException
from merkledrop.models import Config
from merkledrop.test.conftest import STUBS

TOKEN = "0x4ed4e862860bed51a9570b96d89af5e1b0efefed"
DISTRIBUTOR = "0x1f98431c8ad98523631ae4a59f267346ea31f984"


def make_config(**kwargs) -> Config:
    return Config(
        token=TOKEN, distributor=DISTRIBUTOR, block_snapshot=21_000_000, **kwargs
    )


def test_load_from_directory_or_file():
    from_dir = load_conf(os.path.join(STUBS, "config"))
    from_file = load_conf(os.path.join(STUBS, "config", "epoch-conf.json"))

    assert from_dir == from_file
    assert from_dir.token == TOKEN
    assert from_dir.excluded_addresses == ["0x000000000000000000000000000000000000dead"]


def test_missing_config_raises(tmp_path):
    with pytest.raises(BadConfigException):
        load_conf(str(tmp_path))


def test_invalid_config_file_raises(tmp_path):
    with open(tmp_path / "epoch-conf.json", "w") as f:
        json.dump({"token": "nope", "block_snapshot": 1}, f)

    with pytest.raises(BadConfigException):
        load_conf(str(tmp_path))


def test_defaults():
    conf = make_config()

    assert conf.decimals == 8
    assert conf.chain_id == 8453
    assert conf.page_size == 1000
    assert conf.snapshot_dir == "reports/21000000"


def test_addresses_normalized_and_deduplicated(ADDRESSES):
    uppercase = "0x" + ADDRESSES[0][2:].upper()
    conf = make_config(approved_pools=[uppercase, ADDRESSES[0], ADDRESSES[1]])
    assert conf.approved_pools == [ADDRESSES[0], ADDRESSES[1]]


def test_invalid_address():
    with pytest.raises(ValidationError):
        Config(token="0x1234", distributor=DISTRIBUTOR, block_snapshot=1)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"block_snapshot": 0},
        {"decimals": 78},
        {"page_size": 0},
        {"page_size": 1001},
        {"concurrency": 0},
        {"max_retries": 0},
        {"batch_delay_ms": -1},
    ],
)
def test_out_of_range_values(kwargs):
    base = dict(token=TOKEN, distributor=DISTRIBUTOR, block_snapshot=21_000_000)
    with pytest.raises(BadConfigException):
        Config(**{**base, **kwargs})
