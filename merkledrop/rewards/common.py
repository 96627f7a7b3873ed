from functools import reduce
from typing import Iterable

from merkledrop.errors import PoolInvariantError
from merkledrop.models import BalanceMap, Claim, EthereumAddress


def add_balances(a: BalanceMap, b: BalanceMap) -> BalanceMap:
    """
    Pointwise sum of two balance maps, returns a new map.
    Addition is commutative so the fold order never changes the result.
    """
    merged = dict(a)
    for addr, amount in b.items():
        if amount < 0:
            raise PoolInvariantError(f"Negative balance {amount} for {addr}")
        merged[addr] = merged.get(addr, 0) + amount
    return merged


def merge_balances(partials: Iterable[BalanceMap]) -> BalanceMap:
    return reduce(add_balances, partials, {})


def apply_exclusions(
    balances: BalanceMap, excluded: Iterable[EthereumAddress]
) -> BalanceMap:
    """Drop excluded addresses and zero entries"""
    excluded_set = {e.lower() for e in excluded}
    return {
        addr: amount
        for addr, amount in balances.items()
        if addr not in excluded_set and amount > 0
    }


def finalize_balances(balances: BalanceMap) -> BalanceMap:
    """
    Fix the iteration order of the final map (ascending address) so that claim indices
    don't depend on the order in which workers happened to finish.
    """
    return {addr: balances[addr] for addr in sorted(balances)}


def compute_rewards(
    balances: BalanceMap, reward_per_token: int, decimals: int
) -> dict[EthereumAddress, int]:
    """
    reward = floor(balance * reward_per_token / 10**decimals), integers only.
    Accounts whose reward rounds down to zero are left out.
    """
    unit = 10**decimals
    rewards: dict[EthereumAddress, int] = {}
    for addr, balance in balances.items():
        reward = balance * reward_per_token // unit
        if reward > 0:
            rewards[addr] = reward
    return rewards


def build_claims(rewards: dict[EthereumAddress, int]) -> list[Claim]:
    """Index claims densely, in the iteration order of `rewards`"""
    return [
        Claim(index=idx, account=addr, amount=str(amount))
        for idx, (addr, amount) in enumerate(rewards.items())
    ]


def total_rewards(claims: list[Claim]) -> int:
    return sum(int(c.amount) for c in claims)
