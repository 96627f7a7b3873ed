import os
from typing import Optional
from dotenv import load_dotenv
from merkledrop.errors import MissingEnvironmentVariableException

load_dotenv()


def env_var(accessor: str, default: Optional[str] = None) -> str:
    """
    Attempt to fetch an environment variable and throw
    an error if not found and no default is given
    """
    var = os.environ.get(accessor, default)
    if not var:
        raise MissingEnvironmentVariableException(accessor)
    return var


def optional_env_var(accessor: str) -> Optional[str]:
    return os.environ.get(accessor) or None


RPC_URL = env_var("RPC_URL", "http://127.0.0.1:8545")

# alchemy serves `alchemy_getAssetTransfers` from the same endpoint as the node
TRANSFERS_API_URL = env_var("TRANSFERS_API_URL", RPC_URL)


class SUBGRAPHS:
    # concentrated liquidity positions, indexed by pool
    POSITIONS = optional_env_var("SUBGRAPH_POSITIONS")
