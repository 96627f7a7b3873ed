# simplified ABIs containing just the fragments we call


def _view(name: str, inputs: list[str], outputs: list[str]) -> dict:
    return {
        "inputs": [{"internalType": t, "name": "", "type": t} for t in inputs],
        "name": name,
        "outputs": [{"internalType": t, "name": "", "type": t} for t in outputs],
        "stateMutability": "view",
        "type": "function",
    }


ERC20_ABI = [
    _view("balanceOf", ["address"], ["uint256"]),
    _view("totalSupply", [], ["uint256"]),
    _view("decimals", [], ["uint8"]),
]

PAIR_TOKENS_ABI = [
    _view("token0", [], ["address"]),
    _view("token1", [], ["address"]),
]

UNIV2_PAIR_ABI = PAIR_TOKENS_ABI + [
    _view("getReserves", [], ["uint112", "uint112", "uint32"]),
    _view("totalSupply", [], ["uint256"]),
]

AERODROME_POOL_ABI = PAIR_TOKENS_ABI + [
    _view("stable", [], ["bool"]),
    _view("reserve0", [], ["uint256"]),
    _view("reserve1", [], ["uint256"]),
    _view("totalSupply", [], ["uint256"]),
]

# only the leading fields, uniswap v3 and slipstream disagree on the rest of slot0
CL_POOL_ABI = PAIR_TOKENS_ABI + [_view("slot0", [], ["uint160", "int24"])]

CURVE_POOL_ABI = [_view("coins", ["uint256"], ["address"])]

WEIGHTED_POOL_ABI = [_view("getPoolId", [], ["bytes32"])]

WEEKLY_DISTRIBUTION_ABI = [
    _view("getExcludedAddresses", [], ["address[]"]),
    _view("getCurrentDistributionInfo", [], ["uint256", "uint256", "uint256", "uint256"]),
]
