import datetime
import logging
from typing import Optional

from merkledrop.errors import EmptyDistributionError, NoHolderDataError
from merkledrop.merkle import build_tree, verify_claims
from merkledrop.models import (
    BalanceMap,
    Classification,
    Config,
    DB,
    Distribution,
    DistributionMetadata,
    EthereumAddress,
    SupplyReconciliation,
    Writer,
)
from merkledrop.queries import (
    Clients,
    classify_addresses,
    get_distribution_info,
    get_excluded_addresses,
    get_token_balances,
    get_token_total_supply,
    harvest_holders,
)
from merkledrop.rewards import (
    ExpansionResult,
    apply_exclusions,
    build_claims,
    compute_rewards,
    expand_pools,
    finalize_balances,
    total_rewards,
)

logger = logging.getLogger(__name__)

DIRECT_SOURCE = "direct"


def lp_source(pool: EthereumAddress) -> str:
    return f"lp:{pool}"


def recipient_sources(
    recipients: list[EthereumAddress],
    direct: BalanceMap,
    expansion: ExpansionResult,
) -> dict[EthereumAddress, list[str]]:
    """Which balances each recipient's total was built from"""
    sources: dict[EthereumAddress, list[str]] = {}
    for addr in recipients:
        found = []
        if direct.get(addr, 0) > 0 and addr not in expansion.contributions:
            found.append(DIRECT_SOURCE)
        for pool, shares in expansion.contributions.items():
            if addr in shares:
                found.append(lp_source(pool))
        sources[addr] = found
    return sources


def reconcile_supply(
    clients: Clients, balances: BalanceMap, conf: Config
) -> Optional[SupplyReconciliation]:
    supply = get_token_total_supply(clients, conf)
    if supply is None:
        return None
    reconciliation = SupplyReconciliation.from_totals(supply, sum(balances.values()))
    if int(reconciliation.difference) != 0:
        logger.info(
            f"{reconciliation.difference} units of {conf.token} not attributed to any holder "
            "(rounding, burns, truncated history or undetected pools)"
        )
    return reconciliation


def build_distribution(
    clients: Clients, conf: Config, now: Optional[datetime.datetime] = None
) -> Distribution:
    """
    Runs the whole snapshot and returns a distribution that has not been persisted yet.
    Raises if a required input is missing, in which case nothing should be written.
    """
    now = now or datetime.datetime.now(datetime.timezone.utc)

    # 1. everyone who ever touched the token
    harvest = harvest_holders(clients, conf.token, conf.block_snapshot, conf)
    if not harvest.available or not harvest.holders:
        raise NoHolderDataError(
            f"No transfer data for {conf.token} up to block {conf.block_snapshot}"
        )

    # 2. EOA / contract / pool
    classifications = classify_addresses(clients, harvest.holders, conf)
    pools: list[Classification] = [c for c in classifications.values() if c.is_pool]

    # 3. direct balances at the snapshot block, pools included
    direct = get_token_balances(clients, conf.token, harvest.holders, conf)

    # 4. replace pool balances with provider shares where possible
    expansion = expand_pools(clients, pools, direct, conf)

    # 5. reward rate and the protocol's excluded wallets, both required
    info = get_distribution_info(clients, conf)
    excluded = set(get_excluded_addresses(clients, conf)) | set(conf.excluded_addresses)

    reconciliation = reconcile_supply(clients, expansion.balances, conf)

    # 6. exclusions are applied last so pool shares owed to excluded addresses go too
    final = finalize_balances(apply_exclusions(expansion.balances, excluded))
    rewards = compute_rewards(final, info.reward_per_token, conf.decimals)
    if not rewards:
        raise EmptyDistributionError(
            f"No rewards to distribute: {len(final)} holders at rate {info.reward_per_token}"
        )

    # 7. tree, proofs and a self check before anything leaves this function
    claims = build_claims(rewards)
    root, proven = build_tree(claims)
    verify_claims(root, proven)

    metadata = DistributionMetadata(
        generated_at=now.isoformat(),
        block_snapshot=conf.block_snapshot,
        chain_id=conf.chain_id,
        token=conf.token,
        onchain=info,
        holders=len(harvest.holders),
        transfers_truncated=harvest.truncated,
        excluded_count=len(excluded),
        pools=expansion.reports,
        reconciliation=reconciliation,
        sources=recipient_sources(list(rewards), direct, expansion),
    )

    return Distribution(
        merkleRoot=root,
        totalRewards=str(total_rewards(proven)),
        claims={c.account: c for c in proven},
        metadata=metadata,
    )


def run_snapshot(
    clients: Clients, conf: Config, db: DB, writer: Optional[Writer] = None
) -> Distribution:
    """
    Build, persist, then write report files. Any failure before the insert leaves the
    store untouched, so a failed run can simply be repeated.
    """
    distribution = build_distribution(clients, conf)
    persisted = db.write_distribution(distribution)

    writer = writer or Writer(conf)
    writer.write_distribution(persisted)
    return persisted
