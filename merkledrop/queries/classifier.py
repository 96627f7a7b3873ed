import logging
from typing import Callable, Optional

from web3 import Web3

from merkledrop.models import (
    Classification,
    Config,
    EthereumAddress,
    PoolType,
)
from merkledrop.queries.abis import (
    AERODROME_POOL_ABI,
    CL_POOL_ABI,
    CURVE_POOL_ABI,
    UNIV2_PAIR_ABI,
    WEIGHTED_POOL_ABI,
)
from merkledrop.queries.common import Clients, call_view, fan_out, retry_policy, with_retries

"""
Classification is a guess. Bytecode presence is authoritative for EOAs, but a contract is only
recognised as a pool if one of the known pool interfaces answers a read-only call.
Pools with an interface we don't know are classified as plain contracts and their balance
is counted as if the pool were an end recipient.
"""

logger = logging.getLogger(__name__)

# (matched, subtype)
ProbeResult = tuple[bool, Optional[PoolType]]
Probe = Callable[[Web3, EthereumAddress, int], ProbeResult]

NO_MATCH: ProbeResult = (False, None)

# EIP-7702: an EOA delegating to a contract has code 0xef0100 || address
DELEGATION_PREFIX = bytes.fromhex("ef0100")
DELEGATION_CODE_LENGTH = 23


def probe_constant_product(w3: Web3, address: EthereumAddress, block: int) -> ProbeResult:
    call_view(w3, address, UNIV2_PAIR_ABI, "getReserves", block=block)
    return True, PoolType.CONSTANT_PRODUCT


def probe_aerodrome(w3: Web3, address: EthereumAddress, block: int) -> ProbeResult:
    """
    Aerodrome pools answer getReserves() too, so they are told apart by `stable()`,
    which plain V2 pairs don't have. Runs before the constant product probe.
    """
    call_view(w3, address, AERODROME_POOL_ABI, "stable", block=block)
    call_view(w3, address, AERODROME_POOL_ABI, "reserve0", block=block)
    call_view(w3, address, AERODROME_POOL_ABI, "reserve1", block=block)
    return True, PoolType.AERODROME


def probe_concentrated_liquidity(w3: Web3, address: EthereumAddress, block: int) -> ProbeResult:
    call_view(w3, address, CL_POOL_ABI, "slot0", block=block)
    return True, PoolType.CONCENTRATED_LIQUIDITY


def probe_curve(w3: Web3, address: EthereumAddress, block: int) -> ProbeResult:
    call_view(w3, address, CURVE_POOL_ABI, "coins", 0, block=block)
    return True, PoolType.UNKNOWN


def probe_weighted(w3: Web3, address: EthereumAddress, block: int) -> ProbeResult:
    call_view(w3, address, WEIGHTED_POOL_ABI, "getPoolId", block=block)
    return True, PoolType.UNKNOWN


# priority order, the first match wins
POOL_PROBES: list[tuple[str, Probe]] = [
    ("aerodrome", probe_aerodrome),
    ("constant_product", probe_constant_product),
    ("concentrated_liquidity", probe_concentrated_liquidity),
    ("curve", probe_curve),
    ("weighted", probe_weighted),
]


def run_probe(
    probe: Probe, address: EthereumAddress, clients: Clients, conf: Config
) -> ProbeResult:
    """
    A revert, a decode failure or an exhausted retry all mean the interface is absent.
    Probing never raises.
    """
    try:
        return with_retries(
            probe,
            clients.w3,
            address,
            conf.block_snapshot,
            **retry_policy(conf, clients),
        )
    except Exception as e:
        logger.debug(f"{getattr(probe, '__name__', probe)} did not match {address}: {e}")
        return NO_MATCH


def is_delegated_eoa(code: bytes) -> bool:
    return len(code) == DELEGATION_CODE_LENGTH and code.startswith(DELEGATION_PREFIX)


def get_code(clients: Clients, address: EthereumAddress, conf: Config) -> bytes:
    code = with_retries(
        clients.w3.eth.get_code,
        Web3.to_checksum_address(address),
        conf.block_snapshot,
        **retry_policy(conf, clients),
    )
    return bytes(code)


def classify_address(
    clients: Clients, address: EthereumAddress, conf: Config
) -> Classification:
    """
    1. no code at the snapshot block: EOA, regardless of any override
    2. approved pools are always pools, the probes only pick the subtype
    3. first matching probe decides the pool subtype
    4. anything else with code is a plain contract
    """
    try:
        code = get_code(clients, address, conf)
    except Exception as e:
        # balances of EOAs and contracts are counted the same way, so this is safe
        logger.warning(f"Could not fetch code for {address}, treating as EOA: {e}")
        return Classification.eoa(address)

    if len(code) == 0 or is_delegated_eoa(code):
        return Classification.eoa(address)

    approved = address in conf.approved_pools

    for name, probe in POOL_PROBES:
        matched, pool_type = run_probe(probe, address, clients, conf)
        if matched and pool_type is not None:
            return Classification.pool(address, pool_type, probe=name, approved=approved)

    if approved:
        return Classification.pool(address, PoolType.UNKNOWN, approved=True)

    return Classification.contract(address)


def classify_addresses(
    clients: Clients, addresses: list[EthereumAddress], conf: Config
) -> dict[EthereumAddress, Classification]:
    """Classify concurrently, the result is keyed in the same order as `addresses`"""
    classifications = fan_out(
        lambda a: classify_address(clients, a, conf),
        addresses,
        conf,
    )
    return {c.address: c for c in classifications}
