from itertools import zip_longest
from typing import Optional, Union

from eth_abi.packed import encode_packed
from eth_utils import encode_hex, keccak, to_bytes

from merkledrop.errors import ProofMismatchError
from merkledrop.models import Claim, EthereumAddress

"""
Leaves are keccak256(abi.encodePacked(uint256 index, address account, uint256 amount)), which
is what the MerkleDistributor contract recomputes on claim. Every field is fixed width so no
two claims can pack to the same bytes.

Pairs are hashed in ascending byte order (OpenZeppelin MerkleProof) so a proof doesn't need to
carry left/right positions. Leaves are sorted before building, which makes the root a function
of the set of claims only, not of the order they were handed in. An odd node at the end of a
layer is carried up unchanged.
"""

LEAF_TYPES = ["uint256", "address", "uint256"]

Hash = Union[bytes, str]


def _as_bytes(h: Hash) -> bytes:
    return h if isinstance(h, bytes) else to_bytes(hexstr=h)


def leaf_hash(index: int, account: EthereumAddress, amount: int) -> bytes:
    return keccak(encode_packed(LEAF_TYPES, [index, account, amount]))


def claim_leaf(claim: Claim) -> bytes:
    return leaf_hash(claim.index, claim.account, int(claim.amount))


class MerkleTree:
    def __init__(self, leaves: list[bytes]):
        if not leaves:
            raise ValueError("Cannot build a merkle tree without leaves")
        self.elements = sorted(set(leaves))
        self.layers = MerkleTree.get_layers(self.elements)

    @property
    def root(self) -> bytes:
        return self.layers[-1][0]

    @property
    def hex_root(self) -> str:
        return encode_hex(self.root)

    def get_proof(self, leaf: bytes) -> list[str]:
        idx = self.elements.index(leaf)
        proof = []
        for layer in self.layers:
            pair_idx = idx + 1 if idx % 2 == 0 else idx - 1
            if pair_idx < len(layer):
                proof.append(encode_hex(layer[pair_idx]))
            idx //= 2
        return proof

    @staticmethod
    def get_layers(elements: list[bytes]) -> list[list[bytes]]:
        layers = [elements]
        while len(layers[-1]) > 1:
            layers.append(MerkleTree.get_next_layer(layers[-1]))
        return layers

    @staticmethod
    def get_next_layer(elements: list[bytes]) -> list[bytes]:
        return [
            MerkleTree.combined_hash(a, b)
            for a, b in zip_longest(elements[::2], elements[1::2])
        ]

    @staticmethod
    def combined_hash(a: Optional[bytes], b: Optional[bytes]) -> bytes:
        if a is None:
            return b  # type: ignore
        if b is None:
            return a
        return keccak(b"".join(sorted([a, b])))


def process_proof(leaf: Hash, proof: list[str]) -> bytes:
    """Fold a proof back up to the root using the sort-pairs rule"""
    computed = _as_bytes(leaf)
    for sibling in proof:
        computed = MerkleTree.combined_hash(computed, _as_bytes(sibling))
    return computed


def verify_proof(
    root: Hash, index: int, account: EthereumAddress, amount: int, proof: list[str]
) -> bool:
    """Same check the distributor contract performs for `claim(index, account, amount, proof)`"""
    return process_proof(leaf_hash(index, account, amount), proof) == _as_bytes(root)


def build_tree(claims: list[Claim]) -> tuple[str, list[Claim]]:
    """Returns the hex root and a copy of every claim with its proof attached"""
    leaves = [claim_leaf(c) for c in claims]
    tree = MerkleTree(leaves)
    proven = [
        c.model_copy(update={"proof": tree.get_proof(leaf)})
        for c, leaf in zip(claims, leaves)
    ]
    return tree.hex_root, proven


def verify_claims(root: Hash, claims: list[Claim]) -> None:
    """Raise if any proof fails to reproduce `root`"""
    for c in claims:
        if not verify_proof(root, c.index, c.account, int(c.amount), c.proof):
            raise ProofMismatchError(
                f"Proof for claim {c.index} ({c.account}) does not match root {root}"
            )
