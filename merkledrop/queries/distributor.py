import logging
from typing import Optional

from merkledrop.errors import DistributionInfoError
from merkledrop.models import Config, DistributionInfo, EthereumAddress
from merkledrop.queries.abis import ERC20_ABI, WEEKLY_DISTRIBUTION_ABI
from merkledrop.queries.common import Clients, call_view, retry_policy, with_retries

logger = logging.getLogger(__name__)


def get_distribution_info(clients: Clients, conf: Config) -> DistributionInfo:
    """
    Reward rate for this snapshot, read once from the weekly distribution contract.
    Nothing can be computed without it, so failure is fatal for the run.
    """
    try:
        (distribution_id, reward_per_token, total_supply, timestamp) = with_retries(
            call_view,
            clients.w3,
            conf.distributor,
            WEEKLY_DISTRIBUTION_ABI,
            "getCurrentDistributionInfo",
            block=conf.block_snapshot,
            **retry_policy(conf, clients),
        )
    except Exception as e:
        raise DistributionInfoError(
            f"Could not read distribution info from {conf.distributor}: {e}"
        ) from e

    return DistributionInfo(
        id=int(distribution_id),
        reward_per_token=int(reward_per_token),
        total_supply=int(total_supply),
        timestamp=int(timestamp),
    )


def get_excluded_addresses(clients: Clients, conf: Config) -> list[EthereumAddress]:
    """Protocol wallets registered on the distribution contract, lowercased"""
    try:
        excluded = with_retries(
            call_view,
            clients.w3,
            conf.distributor,
            WEEKLY_DISTRIBUTION_ABI,
            "getExcludedAddresses",
            block=conf.block_snapshot,
            **retry_policy(conf, clients),
        )
    except Exception as e:
        raise DistributionInfoError(
            f"Could not read excluded addresses from {conf.distributor}: {e}"
        ) from e
    return [a.lower() for a in excluded]


def get_token_total_supply(clients: Clients, conf: Config) -> Optional[int]:
    """On-chain supply of the distributed token, only used for reconciliation"""
    try:
        supply = with_retries(
            call_view,
            clients.w3,
            conf.token,
            ERC20_ABI,
            "totalSupply",
            block=conf.block_snapshot,
            **retry_policy(conf, clients),
        )
    except Exception as e:
        logger.warning(f"Could not read total supply of {conf.token}, skipping reconciliation: {e}")
        return None
    return int(supply)
