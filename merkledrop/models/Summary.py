from __future__ import annotations

from pydantic import BaseModel

from merkledrop.models.types import BigNumber


class DistributionInfo(BaseModel):
    """
    Current state of the weekly distribution contract
    :param `id`: the contract's own distribution counter
    :param `reward_per_token`: reward units per whole token held, scaled by token decimals
    """

    id: int
    reward_per_token: int
    total_supply: int
    timestamp: int


class SupplyReconciliation(BaseModel):
    """
    Compares what we accounted for against the token's on-chain supply.
    A positive difference is supply we could not attribute (burns, undetected pools, rounding).
    """

    on_chain_supply: BigNumber
    accounted_supply: BigNumber
    difference: BigNumber

    @staticmethod
    def from_totals(on_chain_supply: int, accounted_supply: int) -> SupplyReconciliation:
        return SupplyReconciliation(
            on_chain_supply=str(on_chain_supply),
            accounted_supply=str(accounted_supply),
            difference=str(on_chain_supply - accounted_supply),
        )
