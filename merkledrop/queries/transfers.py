import logging
from typing import Any, NamedTuple

from merkledrop.env import TRANSFERS_API_URL
from merkledrop.errors import TransientRpcError
from merkledrop.models import Config, EthereumAddress, ZERO_ADDRESS, normalize_address
from merkledrop.queries.common import Clients, post_json, retry_policy, with_retries

"""
Holders are discovered from transfer history rather than a holder list: anyone who ever sent
or received the token up to the snapshot block is a candidate, their balance is read later.

The transfer API returns at most one page (`page_size` transfers) per call and we do not follow
the `pageKey`. Tokens with a longer history yield a truncated holder set, which is flagged
and logged but not corrected.
"""

logger = logging.getLogger(__name__)

# alchemy transfer record, only the fields we read
AssetTransfer = dict[str, Any]


class HarvestResult(NamedTuple):
    """
    :param `holders`: sorted, deduplicated addresses seen as sender or receiver
    :param `truncated`: the page limit was hit so older or newer holders may be missing
    :param `available`: False if the API could not be reached at all. An empty holder list
    with `available=False` means "no data", not "no holders".
    """

    holders: list[EthereumAddress]
    truncated: bool
    available: bool = True

    @staticmethod
    def unavailable() -> "HarvestResult":
        return HarvestResult(holders=[], truncated=False, available=False)


def fetch_transfer_page(
    clients: Clients, token: EthereumAddress, block: int, conf: Config
) -> tuple[list[AssetTransfer], bool]:
    """
    A single `alchemy_getAssetTransfers` call from genesis to `block` inclusive.
    Returns the transfers and whether the API reported more pages.
    """
    payload = {
        "jsonrpc": "2.0",
        "id": 1,
        "method": "alchemy_getAssetTransfers",
        "params": [
            {
                "fromBlock": "0x0",
                "toBlock": hex(block),
                "contractAddresses": [token],
                "category": ["erc20"],
                "excludeZeroValue": True,
                "maxCount": hex(conf.page_size),
            }
        ],
    }
    response = post_json(clients.session, TRANSFERS_API_URL, payload, conf.request_timeout)

    if "error" in response:
        raise TransientRpcError(f"Transfer API error: {response['error']}")

    result = response.get("result") or {}
    transfers = result.get("transfers") or []
    has_more = bool(result.get("pageKey")) or len(transfers) >= conf.page_size
    return transfers, has_more


def holders_from_transfers(transfers: list[AssetTransfer]) -> list[EthereumAddress]:
    """Every valid sender and receiver, lowercased, without the zero address"""
    seen: set[EthereumAddress] = set()
    for t in transfers:
        for raw in (t.get("from"), t.get("to")):
            if not raw:
                continue
            try:
                addr = normalize_address(raw.strip())
            except ValueError:
                continue
            if addr != ZERO_ADDRESS:
                seen.add(addr)
    return sorted(seen)


def harvest_holders(
    clients: Clients, token: EthereumAddress, block: int, conf: Config
) -> HarvestResult:
    """
    Set of addresses that touched `token` up to and including `block`.
    Retries with exponential backoff, then degrades to an unavailable result.
    """
    try:
        transfers, has_more = with_retries(
            fetch_transfer_page,
            clients,
            token,
            block,
            conf,
            **retry_policy(conf, clients),
        )
    except Exception as e:
        logger.warning(
            f"Transfer history for {token} unavailable after {conf.max_retries} attempts: {e}"
        )
        return HarvestResult.unavailable()

    holders = holders_from_transfers(transfers)
    if has_more:
        logger.warning(
            f"Transfer history for {token} hit the page limit of {conf.page_size}, "
            f"holder set of {len(holders)} is truncated"
        )
    return HarvestResult(holders=holders, truncated=has_more)
