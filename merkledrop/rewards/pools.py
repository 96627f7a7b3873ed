import logging
from typing import Iterable, NamedTuple, Optional

from merkledrop.errors import PoolExpansionError, PoolInvariantError
from merkledrop.models import (
    BalanceMap,
    Classification,
    Config,
    EthereumAddress,
    PoolExpansion,
    PoolType,
)
from merkledrop.queries import (
    Clients,
    fan_out,
    get_pool_positions,
    get_reserve_state,
    get_token_balances,
    harvest_holders,
)
from merkledrop.rewards.common import merge_balances

"""
Liquidity pools hold the distributed token on behalf of their providers. We replace the pool's
own balance with per-provider shares:

    share = floor(provider_holding * pool_amount / total_holdings)

Floor division means the shares may add up to less than the pool amount. The remainder is
left unassigned, it is never topped up onto a single provider.

If anything goes wrong for a pool, the pool keeps its own balance and is paid as if it were a
holder. Those rewards are most likely unclaimable, which is a known gap rather than something
we try to redistribute here.
"""

logger = logging.getLogger(__name__)


class Expansion(NamedTuple):
    """
    Shares of a single pool
    :param `truncated`: the provider list came from a transfer history that hit the page limit
    """

    shares: BalanceMap
    truncated: bool


class ExpansionResult(NamedTuple):
    """
    :param `balances`: the balance map with expanded pools replaced by their providers
    :param `reports`: one entry per pool, expanded or fallback
    :param `contributions`: per expanded pool, the shares credited to each provider
    """

    balances: BalanceMap
    reports: list[PoolExpansion]
    contributions: dict[EthereumAddress, BalanceMap]


def proportional_shares(
    holdings: Iterable[tuple[EthereumAddress, int]], pool_amount: int, total: int
) -> BalanceMap:
    """
    Split `pool_amount` in proportion to each holding out of `total`.
    The same provider may appear more than once (several positions), shares are summed.
    Zero shares are dropped.
    """
    if total <= 0:
        raise PoolInvariantError(f"Total holdings must be positive, got {total}")
    if pool_amount < 0:
        raise PoolInvariantError(f"Pool amount cannot be negative, got {pool_amount}")

    shares: BalanceMap = {}
    for addr, held in holdings:
        if held < 0:
            raise PoolInvariantError(f"Negative holding {held} for {addr}")
        share = held * pool_amount // total
        if share > 0:
            shares[addr] = shares.get(addr, 0) + share

    distributed = sum(shares.values())
    if distributed > pool_amount:
        # holdings add up to more than the reported total, state is inconsistent
        raise PoolInvariantError(
            f"Shares of {distributed} exceed pool amount of {pool_amount}"
        )
    return shares


def expand_reserve_pool(
    clients: Clients, pool: Classification, pool_balance: int, conf: Config
) -> Expansion:
    """
    Constant product and Aerodrome pools: the LP receipt token is the pool itself,
    so providers are found from the receipt token's own transfer history.
    """
    state = get_reserve_state(clients, pool, conf)
    if state.total_supply == 0:
        raise PoolInvariantError(f"Pool {pool.address} has zero LP supply")
    if state.reserve == 0 and pool_balance > 0:
        raise PoolInvariantError(
            f"Pool {pool.address} reports no reserve but holds {pool_balance} of the token"
        )

    harvest = harvest_holders(clients, pool.address, conf.block_snapshot, conf)
    if not harvest.available:
        raise PoolExpansionError(f"LP transfer history unavailable for {pool.address}")

    lp_holders = [h for h in harvest.holders if h != pool.address]
    if not lp_holders:
        raise PoolExpansionError(f"No LP holders found for {pool.address}")

    lp_balances = get_token_balances(clients, pool.address, lp_holders, conf)
    if not lp_balances:
        raise PoolExpansionError(f"No LP holder of {pool.address} has a balance")

    shares = proportional_shares(lp_balances.items(), state.reserve, state.total_supply)
    return Expansion(shares=shares, truncated=harvest.truncated)


def expand_concentrated_pool(
    clients: Clients, pool: Classification, pool_balance: int, conf: Config
) -> Expansion:
    """
    Concentrated liquidity: each position is weighted by its liquidity against the
    liquidity of every position the index returns for the pool.
    """
    positions = get_pool_positions(clients, pool.address, conf)
    if not positions:
        raise PoolExpansionError(f"No positions available for {pool.address}")

    total_liquidity = sum(p.liquidity for p in positions)
    shares = proportional_shares(
        ((p.owner, p.liquidity) for p in positions), pool_balance, total_liquidity
    )
    return Expansion(shares=shares, truncated=False)


def expand_pool(
    clients: Clients, pool: Classification, pool_balance: int, conf: Config
) -> Expansion:
    """Raises unless at least one provider is credited"""
    if pool.is_reserve_based:
        expansion = expand_reserve_pool(clients, pool, pool_balance, conf)
    elif pool.pool_type == PoolType.CONCENTRATED_LIQUIDITY:
        expansion = expand_concentrated_pool(clients, pool, pool_balance, conf)
    else:
        raise PoolExpansionError(
            f"No way to split {pool.pool_type} pool {pool.address} (probe: {pool.probe})"
        )

    if not expansion.shares:
        raise PoolInvariantError(f"Every provider share of pool {pool.address} rounds to zero")
    return expansion


def try_expand_pool(
    clients: Clients, pool: Classification, pool_balance: int, conf: Config
) -> tuple[Optional[BalanceMap], PoolExpansion]:
    """Never raises: any failure results in the fallback for this pool only"""
    if pool_balance == 0:
        return None, PoolExpansion.fallback(pool, 0, "pool holds none of the token")

    try:
        expansion = expand_pool(clients, pool, pool_balance, conf)
    except PoolInvariantError as e:
        logger.error(f"Inconsistent state for pool {pool.address}, keeping pool balance: {e}")
        return None, PoolExpansion.fallback(pool, pool_balance, str(e))
    except Exception as e:
        logger.warning(f"Could not expand pool {pool.address}, keeping pool balance: {e}")
        return None, PoolExpansion.fallback(pool, pool_balance, str(e))

    if expansion.truncated:
        logger.warning(
            f"LP holders of {pool.address} are truncated, some providers may be missing"
        )
    return expansion.shares, PoolExpansion.expanded(
        pool, pool_balance, expansion.shares, truncated=expansion.truncated
    )


def expand_pools(
    clients: Clients,
    pools: list[Classification],
    balances: BalanceMap,
    conf: Config,
) -> ExpansionResult:
    """
    Expand every pool concurrently, then fold: start from the direct balances without the
    successfully expanded pools and add each pool's shares. Pools that fell back keep their
    own balance untouched.
    """
    outcomes = fan_out(
        lambda p: try_expand_pool(clients, p, balances.get(p.address, 0), conf),
        pools,
        conf,
    )

    contributions: dict[EthereumAddress, BalanceMap] = {}
    for pool, (shares, _) in zip(pools, outcomes):
        if shares is not None:
            contributions[pool.address] = shares

    remaining = {a: v for a, v in balances.items() if a not in contributions}
    merged = merge_balances([remaining, *contributions.values()])

    return ExpansionResult(
        balances=merged,
        reports=[report for _, report in outcomes],
        contributions=contributions,
    )
