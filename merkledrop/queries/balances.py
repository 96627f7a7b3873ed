from multicall import Call, Multicall  # type: ignore

from merkledrop.models import BalanceMap, Config, EthereumAddress
from merkledrop.queries.common import Clients, chunks, retry_policy, with_retries

# keep each eth_call well below provider gas/response limits
MULTICALL_CHUNK_SIZE = 500


def _multicall_balances(
    clients: Clients, token: EthereumAddress, holders: list[EthereumAddress], block: int
) -> dict[EthereumAddress, object]:
    calls = [
        Call(
            # address to call:
            token,
            # signature + return value, with argument:
            ["balanceOf(address)(uint256)", h],
            # return in a format of {[address]: uint256}:
            [[h, None]],
        )
        for h in holders
    ]

    # a reverting balanceOf comes back as None instead of failing the whole batch
    return Multicall(calls, _w3=clients.w3, block_id=block, require_success=False)()


def get_token_balances(
    clients: Clients,
    token: EthereumAddress,
    holders: list[EthereumAddress],
    conf: Config,
) -> BalanceMap:
    """
    Balance of `token` for every holder at the snapshot block.
    Failed reads count as zero, zero balances are dropped.
    """
    balances: BalanceMap = {}
    for chunk in chunks(holders, MULTICALL_CHUNK_SIZE):
        result = with_retries(
            _multicall_balances,
            clients,
            token,
            chunk,
            conf.block_snapshot,
            **retry_policy(conf, clients),
        )
        for holder in chunk:
            amount = int(result.get(holder) or 0)  # type: ignore
            if amount > 0:
                balances[holder] = amount
    return balances
