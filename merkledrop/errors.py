class EmptyQueryError(Exception):
    """Raise if GraphQL Query returns no results"""

    pass


class TooManyLoopsError(Exception):
    """Raise if a loop runs too many times"""

    pass


class BadConfigException(Exception):
    pass


class MissingEnvironmentVariableException(Exception):
    pass


class TransientRpcError(RuntimeError):
    """Raise on rate limits and other transport failures that are worth retrying"""

    pass


class NoHolderDataError(Exception):
    """Raise if the transfer API returned nothing for the distributed token"""

    pass


class DistributionInfoError(Exception):
    """Raise if the distribution contract could not be read at the snapshot block"""

    pass


class PoolExpansionError(Exception):
    """Raise if a pool cannot be split into per-provider shares"""

    pass


class PoolInvariantError(PoolExpansionError):
    """
    Raise if pool state is inconsistent (zero supply, negative or over-allocated shares).
    Usually means stale or inconsistent on-chain data at the snapshot block.
    """

    pass


class ProofMismatchError(Exception):
    """Raise if a generated proof does not fold back to the merkle root"""

    pass


class DuplicateDistributionError(Exception):
    """Raise if another run already persisted a distribution under the same id"""

    pass


class EmptyDistributionError(Exception):
    """Raise if there are no non-zero claims to distribute"""

    pass
