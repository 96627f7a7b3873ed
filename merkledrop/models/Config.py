from __future__ import annotations

from pydantic import BaseModel, field_validator
import eth_utils as eth

from merkledrop.errors import BadConfigException
from merkledrop.models.types import EthereumAddress

# alchemy_getAssetTransfers will not return more than this per page
MAX_PAGE_SIZE = 1000


def normalize_address(addr: str) -> EthereumAddress:
    """Lowercase hex, raises `ValueError` on anything that is not a 20 byte address"""
    if not eth.is_address(addr):
        raise ValueError(f"Invalid address {addr}")
    return eth.to_normalized_address(addr)


class InputConfig(BaseModel):
    """
    Parameters for a single snapshot, as written by hand into the epoch config file
    :param `token`: the distributed token, rewards accrue per unit held
    :param `distributor`: the weekly distribution contract holding the reward rate and excluded list
    :param `approved_pools`: contracts that are always treated as pools, even if no probe matches
    :param `excluded_addresses`: static deny list, merged with the on-chain excluded addresses
    """

    token: EthereumAddress
    decimals: int = 8
    block_snapshot: int
    distributor: EthereumAddress
    chain_id: int = 8453

    approved_pools: list[EthereumAddress] = []
    excluded_addresses: list[EthereumAddress] = []

    @field_validator("token", "distributor")
    @classmethod
    def normalize_contract(cls, addr: str) -> EthereumAddress:
        return normalize_address(addr)

    @field_validator("approved_pools", "excluded_addresses")
    @classmethod
    def normalize_list(cls, addrs: list[str]) -> list[EthereumAddress]:
        normalized = [normalize_address(a) for a in addrs]
        # keep the first occurrence, preserve order
        return list(dict.fromkeys(normalized))

    @field_validator("block_snapshot")
    @classmethod
    def validate_block(cls, block: int) -> int:
        if block <= 0:
            raise BadConfigException(f"Snapshot block must be positive, passed {block}")
        return block

    @field_validator("decimals")
    @classmethod
    def validate_decimals(cls, decimals: int) -> int:
        if decimals < 0 or decimals > 77:
            raise BadConfigException(f"Token decimals out of range, passed {decimals}")
        return decimals


class Config(InputConfig):
    """
    Full config for a run, adds the knobs that control how hard we hit the upstream APIs.
    Delays are in milliseconds.
    """

    page_size: int = MAX_PAGE_SIZE
    max_retries: int = 3
    backoff_base_ms: int = 1000
    backoff_cap_ms: int = 10_000

    concurrency: int = 8
    batch_size: int = 10
    batch_delay_ms: int = 100
    request_timeout: int = 30

    db_path: str = "reports/distributions-db.json"
    output_dir: str = "reports"

    @field_validator("page_size")
    @classmethod
    def validate_page_size(cls, page_size: int) -> int:
        if page_size < 1 or page_size > MAX_PAGE_SIZE:
            raise BadConfigException(
                f"Page size out of range, must be between 1 and {MAX_PAGE_SIZE}"
            )
        return page_size

    @field_validator("concurrency", "batch_size", "max_retries")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value < 1:
            raise BadConfigException(f"Fan-out, batch size and retries must be >= 1, passed {value}")
        return value

    @field_validator("backoff_base_ms", "backoff_cap_ms", "batch_delay_ms")
    @classmethod
    def validate_delay(cls, delay: int) -> int:
        if delay < 0:
            raise BadConfigException(f"Delays cannot be negative, passed {delay}")
        return delay

    @property
    def snapshot_dir(self) -> str:
        return f"{self.output_dir}/{self.block_snapshot}"
