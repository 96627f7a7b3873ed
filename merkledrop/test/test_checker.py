import datetime

import pytest

from merkledrop.checker import check, check_distribution, claim
from merkledrop.merkle import build_tree
from merkledrop.models import (
    DB,
    Claim,
    Distribution,
    DistributionInfo,
    DistributionMetadata,
)


@pytest.fixture
def distribution(ADDRESSES) -> Distribution:
    root, proven = build_tree(
        [Claim(index=i, account=a, amount=str(10 * (i + 1))) for i, a in enumerate(ADDRESSES)]
    )
    return Distribution(
        merkleRoot=root,
        totalRewards="150",
        claims={c.account: c for c in proven},
        metadata=DistributionMetadata(
            generated_at=datetime.datetime(2024, 1, 1).isoformat(),
            block_snapshot=21_000_000,
            chain_id=8453,
            token=ADDRESSES[0],
            onchain=DistributionInfo(id=1, reward_per_token=1, total_supply=1, timestamp=1),
            holders=5,
            transfers_truncated=False,
            excluded_count=0,
        ),
    )


@pytest.fixture
def db_file(tmp_path, distribution) -> str:
    path = str(tmp_path / "distributions-db.json")
    DB(path).write_distribution(distribution)
    return path


def test_consistent_distribution(distribution):
    assert check_distribution(distribution) == []


def test_wrong_total_is_reported(distribution):
    broken = distribution.model_copy(update={"totalRewards": "151"})
    [problem] = check_distribution(broken)
    assert "recorded total is 151" in problem


def test_tampered_amount_is_reported(distribution, ADDRESSES):
    claims = dict(distribution.claims)
    claims[ADDRESSES[0]] = claims[ADDRESSES[0]].model_copy(update={"amount": "11"})
    broken = distribution.model_copy(update={"claims": claims, "totalRewards": "151"})

    problems = check_distribution(broken)
    assert any("does not match root" in p for p in problems)


def test_check_from_db(db_file):
    assert check(db_file)
    assert check(db_file, 1)
    assert not check(db_file, 2)


def test_claim_lookup(db_file, distribution, ADDRESSES):
    found = claim(db_file, ADDRESSES[1])

    assert found["distributionId"] == 1
    assert found["index"] == 1
    assert found["amount"] == "20"
    assert found["proof"] == distribution.claims[ADDRESSES[1]].proof
    assert claim(db_file, "0x" + "00" * 19 + "01") is None
