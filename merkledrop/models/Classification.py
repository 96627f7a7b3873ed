from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel

from merkledrop.models.types import EthereumAddress


class AddressKind(str, Enum):
    """
    :state EOA: no code at the snapshot block, balance is counted directly
    :state CONTRACT: has code but matches no pool interface, also counted directly
    :state POOL: liquidity pool, balance is split between its providers
    """

    EOA = "eoa"
    CONTRACT = "contract"
    POOL = "pool"


class PoolType(str, Enum):
    # V2 style pair exposing getReserves()
    CONSTANT_PRODUCT = "constant_product"

    # Aerodrome/Velodrome style pair exposing reserve0() and reserve1()
    AERODROME = "aerodrome"

    # V3 style pool exposing slot0(), liquidity lives in NFT positions
    CONCENTRATED_LIQUIDITY = "concentrated_liquidity"

    # curve, weighted pools and approved pools that match nothing we can split
    UNKNOWN = "unknown"


class Classification(BaseModel):
    """
    Result of probing a single address at the snapshot block.
    :param `probe`: name of the interface probe that matched, if any
    :param `approved`: the address is on the manually approved pool list
    """

    address: EthereumAddress
    kind: AddressKind
    pool_type: Optional[PoolType] = None
    probe: Optional[str] = None
    approved: bool = False

    @property
    def is_pool(self) -> bool:
        return self.kind == AddressKind.POOL

    @property
    def is_reserve_based(self) -> bool:
        return self.pool_type in (PoolType.CONSTANT_PRODUCT, PoolType.AERODROME)

    @staticmethod
    def eoa(address: EthereumAddress) -> Classification:
        return Classification(address=address, kind=AddressKind.EOA)

    @staticmethod
    def contract(address: EthereumAddress) -> Classification:
        return Classification(address=address, kind=AddressKind.CONTRACT)

    @staticmethod
    def pool(
        address: EthereumAddress,
        pool_type: PoolType,
        probe: Optional[str] = None,
        approved: bool = False,
    ) -> Classification:
        return Classification(
            address=address,
            kind=AddressKind.POOL,
            pool_type=pool_type,
            probe=probe,
            approved=approved,
        )
