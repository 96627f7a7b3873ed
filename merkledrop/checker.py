from typing import Optional

import fire

from merkledrop.errors import ProofMismatchError
from merkledrop.merkle import verify_claims
from merkledrop.models import DB, Distribution
from merkledrop.rewards import total_rewards


def _load(db: DB, distribution_id: Optional[int]) -> Optional[Distribution]:
    if distribution_id is None:
        return db.latest_distribution()
    return db.get_distribution(int(distribution_id))


def check_distribution(distribution: Distribution) -> list[str]:
    """Everything wrong with a persisted distribution, empty if it is consistent"""
    problems = []
    claims = sorted(distribution.claims.values(), key=lambda c: c.index)

    if [c.index for c in claims] != list(range(len(claims))):
        problems.append("Claim indices are not dense 0..N-1")

    for key, c in distribution.claims.items():
        if key != c.account:
            problems.append(f"Claim keyed under {key} belongs to {c.account}")
        if int(c.amount) <= 0:
            problems.append(f"Non-positive amount for {c.account}")

    total = total_rewards(claims)
    if str(total) != distribution.totalRewards:
        problems.append(f"Claims add up to {total}, recorded total is {distribution.totalRewards}")

    try:
        verify_claims(distribution.merkleRoot, claims)
    except ProofMismatchError as e:
        problems.append(str(e))

    return problems


def check(db_file: str, distribution_id: Optional[int] = None) -> bool:
    db = DB(db_file)
    distribution = _load(db, distribution_id)
    if distribution is None:
        print(f"No distribution found in {db_file}")
        return False

    print(f"Distribution {distribution.id} @ block {distribution.metadata.block_snapshot}")
    print(f"Root: {distribution.merkleRoot}")
    print(f"Claims: {len(distribution.claims)}, total rewards: {distribution.totalRewards}")

    problems = check_distribution(distribution)
    print(f"Problems found: {len(problems)}")
    for p in problems:
        print(p)
    return len(problems) == 0


def claim(db_file: str, account: str) -> Optional[dict]:
    """Claim data for `account` in the latest distribution, as the claim contract expects it"""
    found = DB(db_file).find_claim(account)
    if found is None:
        print(f"No claim for {account}")
        return None

    distribution_id, c = found
    return {
        "distributionId": distribution_id,
        "index": c.index,
        "account": c.account,
        "amount": c.amount,
        "proof": c.proof,
    }


if __name__ == "__main__":
    fire.Fire({"check": check, "claim": claim})
