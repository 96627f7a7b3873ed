from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel

from merkledrop.models.types import BigNumber, EthereumAddress
from merkledrop.models.Classification import Classification, PoolType


class ExpansionStatus(str, Enum):
    """
    :state EXPANDED: the pool balance was replaced by its providers' shares
    :state FALLBACK: expansion failed, the pool keeps its own balance
    """

    EXPANDED = "expanded"
    FALLBACK = "fallback"


class ReserveState(BaseModel):
    """
    Reserve-based pool at the snapshot block
    :param `reserve`: the pool's reserve of the distributed token
    :param `total_supply`: total supply of the pool's LP receipt token
    """

    token0: EthereumAddress
    token1: EthereumAddress
    reserve: int
    total_supply: int


class Position(BaseModel):
    """A single concentrated liquidity position as returned by the position index"""

    owner: EthereumAddress
    liquidity: int


class PoolExpansion(BaseModel):
    """
    Outcome of splitting one pool, stored in the distribution metadata
    :param `distributed`: sum of all provider shares, may be below the pool balance by rounding
    :param `reason`: why the fallback was applied
    :param `truncated`: providers were found from a transfer history that hit the page limit
    """

    address: EthereumAddress
    pool_type: Optional[PoolType]
    probe: Optional[str] = None
    status: ExpansionStatus
    pool_balance: BigNumber = "0"
    providers: int = 0
    distributed: BigNumber = "0"
    reason: Optional[str] = None
    truncated: bool = False

    @staticmethod
    def expanded(
        pool: Classification,
        pool_balance: int,
        shares: dict[EthereumAddress, int],
        truncated: bool = False,
    ) -> PoolExpansion:
        return PoolExpansion(
            address=pool.address,
            pool_type=pool.pool_type,
            probe=pool.probe,
            status=ExpansionStatus.EXPANDED,
            pool_balance=str(pool_balance),
            providers=len(shares),
            distributed=str(sum(shares.values())),
            truncated=truncated,
        )

    @staticmethod
    def fallback(pool: Classification, pool_balance: int, reason: str) -> PoolExpansion:
        return PoolExpansion(
            address=pool.address,
            pool_type=pool.pool_type,
            probe=pool.probe,
            status=ExpansionStatus.FALLBACK,
            pool_balance=str(pool_balance),
            reason=reason,
        )
