import logging
import sys

from merkledrop.config import load_conf
from merkledrop.models import DB, Distribution
from merkledrop.queries import Clients
from merkledrop.run_snapshot import run_snapshot


def main(path_to_config: str) -> Distribution:
    conf = load_conf(path_to_config)
    print(f"🌳 Generating merkle distribution for {conf.token} @ block {conf.block_snapshot}")

    clients = Clients.from_config(conf)
    db = DB(conf.db_path)

    distribution = run_snapshot(clients, conf, db)

    meta = distribution.metadata
    expanded = [p for p in meta.pools if p.status == "expanded"]
    print(f"👥 {meta.holders} holders found, {len(meta.pools)} pools ({len(expanded)} expanded)")
    if meta.transfers_truncated:
        print("⚠️ Transfer history was truncated, some holders may be missing")
    print(f"🌱 Merkle root: {distribution.merkleRoot}")
    print(f"💰 Total rewards: {distribution.totalRewards} across {len(distribution.claims)} claims")
    print(f"💾 Saved distribution {distribution.id} to {conf.db_path} and {conf.snapshot_dir}")
    return distribution


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    path = sys.argv[1] if len(sys.argv) > 1 else input(" Path to the config file ")
    try:
        main(path)
    except Exception as e:
        print(f"❌ Snapshot failed, nothing was persisted: {e}")
        sys.exit(1)
