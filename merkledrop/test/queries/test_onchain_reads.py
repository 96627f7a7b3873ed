import pytest

from merkledrop.errors import DistributionInfoError, PoolExpansionError
from merkledrop.models import Classification, PoolType
from merkledrop.queries import (
    get_distribution_info,
    get_excluded_addresses,
    get_pool_positions,
    get_reserve_state,
    get_token_balances,
    get_token_total_supply,
    pick_reserve,
)
from merkledrop.test.conftest import LIVE_CALLS_DISABLED, SKIP_REASON

POOL = "0x1111111111111111111111111111111111111111"
OTHER = "0x4200000000000000000000000000000000000006"


def fake_views(results: dict):
    """call_view replacement answering from a dict keyed by function name"""

    def call_view(w3, address, abi, fn_name, *args, block):
        value = results[fn_name]
        if isinstance(value, Exception):
            raise value
        return value

    return call_view


def test_balances_skip_zero_and_failed(monkeypatch, clients, config, ADDRESSES):
    a, b, c = ADDRESSES[:3]

    class FakeMulticall:
        def __init__(self, calls, _w3, block_id, require_success):
            assert block_id == config.block_snapshot
            assert not require_success
            self.calls = calls

        def __call__(self):
            return {a: 100, b: 0, c: None}

    monkeypatch.setattr("merkledrop.queries.balances.Multicall", FakeMulticall)

    balances = get_token_balances(clients, config.token, [a, b, c], config)
    assert balances == {a: 100}


def test_distribution_info(monkeypatch, clients, config):
    monkeypatch.setattr(
        "merkledrop.queries.distributor.call_view",
        fake_views({"getCurrentDistributionInfo": (7, 1000, 10**16, 1700000000)}),
    )
    info = get_distribution_info(clients, config)

    assert info.id == 7
    assert info.reward_per_token == 1000


def test_distribution_info_failure_is_fatal(monkeypatch, clients, config):
    monkeypatch.setattr(
        "merkledrop.queries.distributor.call_view",
        fake_views({"getCurrentDistributionInfo": ValueError("execution reverted")}),
    )
    with pytest.raises(DistributionInfoError):
        get_distribution_info(clients, config)


def test_excluded_addresses_are_lowercased(monkeypatch, clients, config):
    monkeypatch.setattr(
        "merkledrop.queries.distributor.call_view",
        fake_views({"getExcludedAddresses": ["0x000000000000000000000000000000000000dEaD"]}),
    )
    assert get_excluded_addresses(clients, config) == [
        "0x000000000000000000000000000000000000dead"
    ]


def test_total_supply_failure_is_not_fatal(monkeypatch, clients, config):
    monkeypatch.setattr(
        "merkledrop.queries.distributor.call_view",
        fake_views({"totalSupply": ValueError("execution reverted")}),
    )
    assert get_token_total_supply(clients, config) is None


@pytest.mark.parametrize(
    "pool_type, views",
    [
        (PoolType.CONSTANT_PRODUCT, {"getReserves": (500, 900, 0)}),
        (PoolType.AERODROME, {"reserve0": 500, "reserve1": 900}),
    ],
)
def test_reserve_of_the_distributed_token(monkeypatch, clients, config, pool_type, views):
    # token1 is the distributed token, so its reserve is the second one
    monkeypatch.setattr(
        "merkledrop.queries.pools.call_view",
        fake_views({**views, "token0": OTHER, "token1": config.token, "totalSupply": 42}),
    )
    state = get_reserve_state(clients, Classification.pool(POOL, pool_type), config)

    assert state.reserve == 900
    assert state.total_supply == 42


def test_pool_without_the_token_cannot_be_expanded(config):
    with pytest.raises(PoolExpansionError):
        pick_reserve(config.token, OTHER, POOL, 1, 2)


def test_concentrated_pools_have_no_reserves(clients, config):
    pool = Classification.pool(POOL, PoolType.CONCENTRATED_LIQUIDITY)
    with pytest.raises(PoolExpansionError):
        get_reserve_state(clients, pool, config)


def test_positions_without_index_configured(clients, config):
    assert get_pool_positions(clients, POOL, config, url=None) == []


def test_positions_are_parsed(monkeypatch, clients, config, ADDRESSES):
    monkeypatch.setattr(
        "merkledrop.queries.positions.graphql_iterate_query",
        lambda url, access_path, params, **kwargs: [
            {"owner": ADDRESSES[0].upper().replace("0X", "0x"), "liquidity": "1000"},
            {"owner": ADDRESSES[1], "liquidity": "0"},
        ],
    )
    positions = get_pool_positions(clients, POOL, config, url="http://graph")

    assert len(positions) == 1
    assert positions[0].owner == ADDRESSES[0]
    assert positions[0].liquidity == 1000


@pytest.mark.skipif(LIVE_CALLS_DISABLED, reason=SKIP_REASON)
def test_live_distribution_info(config):
    from merkledrop.queries import Clients

    info = get_distribution_info(Clients.from_config(config), config)
    assert info.reward_per_token >= 0
