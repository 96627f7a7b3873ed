from merkledrop.errors import PoolExpansionError
from merkledrop.models import (
    Classification,
    Config,
    EthereumAddress,
    PoolType,
    ReserveState,
)
from merkledrop.queries.abis import AERODROME_POOL_ABI, UNIV2_PAIR_ABI
from merkledrop.queries.common import Clients, call_view, retry_policy, with_retries


def _read(clients: Clients, conf: Config, address: EthereumAddress, abi, fn_name: str):
    return with_retries(
        call_view,
        clients.w3,
        address,
        abi,
        fn_name,
        block=conf.block_snapshot,
        **retry_policy(conf, clients),
    )


def pick_reserve(
    token: EthereumAddress,
    token0: EthereumAddress,
    token1: EthereumAddress,
    reserve0: int,
    reserve1: int,
) -> int:
    """Reserve of `token` in a two-sided pool"""
    if token0.lower() == token:
        return reserve0
    if token1.lower() == token:
        return reserve1
    raise PoolExpansionError(f"Pool does not pair {token}: tokens are {token0}, {token1}")


def get_reserve_state(
    clients: Clients, pool: Classification, conf: Config
) -> ReserveState:
    """
    Reserve of the distributed token and LP total supply of a reserve-based pool.
    Constant product pairs pack both reserves in getReserves(),
    Aerodrome style pools expose them separately.
    """
    if pool.pool_type == PoolType.CONSTANT_PRODUCT:
        abi = UNIV2_PAIR_ABI
        reserve0, reserve1, _ = _read(clients, conf, pool.address, abi, "getReserves")
    elif pool.pool_type == PoolType.AERODROME:
        abi = AERODROME_POOL_ABI
        reserve0 = _read(clients, conf, pool.address, abi, "reserve0")
        reserve1 = _read(clients, conf, pool.address, abi, "reserve1")
    else:
        raise PoolExpansionError(f"{pool.pool_type} pools have no reserves to read")

    token0 = _read(clients, conf, pool.address, abi, "token0").lower()
    token1 = _read(clients, conf, pool.address, abi, "token1").lower()
    total_supply = _read(clients, conf, pool.address, abi, "totalSupply")

    return ReserveState(
        token0=token0,
        token1=token1,
        reserve=pick_reserve(conf.token, token0, token1, int(reserve0), int(reserve1)),
        total_supply=int(total_supply),
    )
