from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from merkledrop.models.types import BigNumber, EthereumAddress
from merkledrop.models.Pool import PoolExpansion
from merkledrop.models.Summary import DistributionInfo, SupplyReconciliation


class Claim(BaseModel):
    """
    Minimal claim data for each recipient that is hashed into the merkle tree
    :param `index`: dense 0..N-1 position of the claim within one distribution.
    Used by the MerkleDistributor to efficiently index on-chain claiming.
    :param `proof`: sibling hashes from leaf to root, filled in once the tree is built
    """

    index: int
    account: EthereumAddress
    amount: BigNumber
    proof: list[str] = []


class DistributionMetadata(BaseModel):
    """
    Everything we know about how the distribution was produced. Nothing here is hashed
    into the tree, it is purely for auditing.
    """

    generated_at: str
    block_snapshot: int
    chain_id: int
    token: EthereumAddress
    onchain: DistributionInfo
    holders: int
    transfers_truncated: bool
    excluded_count: int
    pools: list[PoolExpansion] = []
    reconciliation: Optional[SupplyReconciliation] = None
    sources: dict[EthereumAddress, list[str]] = {}


class Distribution(BaseModel):
    """
    The finished snapshot. `id` is assigned on persistence and the record is never
    modified afterwards, a later run creates a new distribution.
    """

    id: Optional[int] = None
    merkleRoot: str
    totalRewards: BigNumber
    claims: dict[EthereumAddress, Claim]
    metadata: DistributionMetadata

    def claim_for(self, account: EthereumAddress) -> Optional[Claim]:
        return self.claims.get(account.lower())
