import random

import pytest
from eth_utils import keccak

from merkledrop.errors import ProofMismatchError
from merkledrop.merkle import (
    MerkleTree,
    build_tree,
    claim_leaf,
    leaf_hash,
    verify_claims,
    verify_proof,
)
from merkledrop.models import Claim


@pytest.fixture
def claims(ADDRESSES) -> list[Claim]:
    return [
        Claim(index=i, account=addr, amount=str((i + 1) * 10**18))
        for i, addr in enumerate(ADDRESSES)
    ]


def test_leaf_is_packed_index_account_amount():
    account = "0x9bc33f6155efacc290c3c50e9b5b24b668562732"
    packed = (
        (3).to_bytes(32, "big")
        + bytes.fromhex(account[2:])
        + (12345).to_bytes(32, "big")
    )
    assert leaf_hash(3, account, 12345) == keccak(packed)


def test_leaf_depends_on_index(ADDRESSES):
    assert leaf_hash(0, ADDRESSES[0], 100) != leaf_hash(1, ADDRESSES[0], 100)


def test_root_independent_of_claim_order(claims):
    root, _ = build_tree(claims)

    for seed in range(5):
        shuffled = list(claims)
        random.Random(seed).shuffle(shuffled)
        shuffled_root, _ = build_tree(shuffled)
        assert shuffled_root == root


def test_every_proof_verifies(claims):
    root, proven = build_tree(claims)

    assert len(proven) == len(claims)
    for c in proven:
        assert verify_proof(root, c.index, c.account, int(c.amount), c.proof)

    verify_claims(root, proven)


def test_proof_fails_for_wrong_amount_or_index(claims):
    root, proven = build_tree(claims)
    c = proven[2]

    assert not verify_proof(root, c.index, c.account, int(c.amount) + 1, c.proof)
    assert not verify_proof(root, c.index + 1, c.account, int(c.amount), c.proof)


def test_verify_claims_raises_on_tampered_proof(claims):
    root, proven = build_tree(claims)
    tampered = proven[0].model_copy(update={"proof": list(reversed(proven[1].proof))})

    with pytest.raises(ProofMismatchError):
        verify_claims(root, [tampered, *proven[1:]])


def test_single_claim_tree(claims):
    root, proven = build_tree(claims[:1])

    assert proven[0].proof == []
    assert root == "0x" + claim_leaf(claims[0]).hex()


def test_odd_node_is_carried_up():
    a, b, c = sorted([keccak(b"a"), keccak(b"b"), keccak(b"c")])
    tree = MerkleTree([c, a, b])

    assert tree.layers[1] == [MerkleTree.combined_hash(a, b), c]
    assert tree.get_proof(c) == ["0x" + MerkleTree.combined_hash(a, b).hex()]


def test_pair_hash_is_commutative():
    a, b = keccak(b"left"), keccak(b"right")
    assert MerkleTree.combined_hash(a, b) == MerkleTree.combined_hash(b, a)


def test_empty_tree_raises():
    with pytest.raises(ValueError):
        MerkleTree([])
