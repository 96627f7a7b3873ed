import logging
from typing import Any, Optional

from merkledrop.env import SUBGRAPHS
from merkledrop.models import Config, EthereumAddress, Position, normalize_address
from merkledrop.queries.common import Clients, graphql_iterate_query, retry_policy

"""
Concentrated liquidity is held in NFT positions, not in a fungible receipt token, so we can't
use transfer history to find providers. Instead we ask a position index (a v3 style subgraph)
for every position in the pool with non-zero liquidity at the snapshot block.
"""

logger = logging.getLogger(__name__)

POSITIONS_QUERY = """
    query ($pool: String, $block: Int, $skip: Int) {
        positions(
            first: 1000
            skip: $skip
            block: { number: $block }
            where: { pool: $pool, liquidity_gt: 0 }
        ) {
            owner
            liquidity
        }
    }
"""


def to_position(raw: dict[str, Any]) -> Position:
    return Position(owner=normalize_address(raw["owner"]), liquidity=int(raw["liquidity"]))


def get_pool_positions(
    clients: Clients,
    pool: EthereumAddress,
    conf: Config,
    url: Optional[str] = SUBGRAPHS.POSITIONS,
) -> list[Position]:
    """
    Every open position in `pool` at the snapshot block.
    Returns an empty list when no position index is configured.
    """
    if not url:
        logger.warning(f"No position index configured, cannot resolve providers of {pool}")
        return []

    variables = {"pool": pool, "block": conf.block_snapshot, "skip": 0}
    raw_positions: list[dict[str, Any]] = graphql_iterate_query(
        url,
        ["positions"],
        dict(query=POSITIONS_QUERY, variables=variables),  # type: ignore
        session=clients.session,
        **retry_policy(conf, clients),
    )
    return [to_position(p) for p in raw_positions if int(p["liquidity"]) > 0]
