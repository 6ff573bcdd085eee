"""
Binary Merkle tree over hex digests.

Construction rules (identical for builder and verifier):
- parent = SHA-256(bytes(left) + bytes(right)) of the hex-decoded children
- an odd node at the end of a level is paired with itself
- a single leaf is its own root

Proofs use the layered form carried by ``CaptchaWithProof.proof``: every
layer but the last is the ordered ``[left, right]`` pair that contains the
running node, and the last layer is ``[root]``. The pair order encodes which
side the sibling sits on.
"""

import binascii
import hashlib
from collections.abc import Sequence
from dataclasses import dataclass

from captcha_provider.core.hashing import hash_solution
from captcha_provider.exceptions import MalformedProofError
from captcha_provider.schemas.captcha import CaptchaSolution

Proof = list[list[str]]


def _decode(node: str) -> bytes:
    try:
        return bytes.fromhex(node)
    except (ValueError, binascii.Error) as e:
        raise MalformedProofError(f"Merkle node is not hex: {node[:16]}") from e


def hash_pair(left: str, right: str) -> str:
    return hashlib.sha256(_decode(left) + _decode(right)).hexdigest()


@dataclass(frozen=True)
class MerkleNode:
    hash: str


class MerkleTree:
    """
    Merkle tree built once from an ordered list of leaf hashes.

    Usage:
        tree = MerkleTree.build(leaf_hashes)
        commitment_id = tree.root.hash
        proof = tree.proof(2)
    """

    def __init__(self, layers: list[list[str]]):
        self.layers = layers

    @classmethod
    def build(cls, leaves: Sequence[str]) -> "MerkleTree":
        if not leaves:
            raise ValueError("Cannot build a Merkle tree without leaves")

        layers = [list(leaves)]
        for leaf in layers[0]:
            _decode(leaf)

        while len(layers[-1]) > 1:
            level = layers[-1]
            parents = []
            for i in range(0, len(level), 2):
                left = level[i]
                right = level[i + 1] if i + 1 < len(level) else left
                parents.append(hash_pair(left, right))
            layers.append(parents)

        return cls(layers)

    @property
    def root(self) -> MerkleNode:
        return MerkleNode(hash=self.layers[-1][0])

    @property
    def leaves(self) -> list[str]:
        return self.layers[0]

    def proof(self, leaf_index: int) -> Proof:
        """Return the layered inclusion proof for the leaf at ``leaf_index``."""
        if leaf_index < 0 or leaf_index >= len(self.leaves):
            raise IndexError(f"Leaf index {leaf_index} out of range")

        proof: Proof = []
        index = leaf_index
        for level in self.layers[:-1]:
            pair_start = index - (index % 2)
            left = level[pair_start]
            right = level[pair_start + 1] if pair_start + 1 < len(level) else left
            proof.append([left, right])
            index //= 2
        proof.append([self.root.hash])
        return proof

    def proof_for(self, leaf: str) -> Proof:
        return self.proof(self.leaves.index(leaf))


def _check_shape(proof: Proof) -> None:
    if not proof:
        raise MalformedProofError("Proof has no layers")
    for layer in proof[:-1]:
        if len(layer) != 2:
            raise MalformedProofError(f"Proof layer must hold 2 nodes, got {len(layer)}")
    if len(proof[-1]) != 1:
        raise MalformedProofError("Final proof layer must hold only the root")


def proof_root(proof: Proof) -> str:
    _check_shape(proof)
    return proof[-1][0]


def verify_proof(leaf: str, proof: Proof, expected_root: str | None = None) -> bool:
    """
    Check that ``leaf`` is included under ``expected_root``.

    Returns False on any hash mismatch. Raises MalformedProofError when the
    proof does not have the layered shape described in the module docstring.
    When ``expected_root`` is omitted the root in the proof's last layer is used.
    """
    _check_shape(proof)
    root = proof[-1][0]
    if expected_root is not None and root != expected_root:
        return False

    node = leaf
    for layer, next_layer in zip(proof[:-1], proof[1:]):
        if node not in layer:
            return False
        node = hash_pair(layer[0], layer[1])
        if node not in next_layer:
            return False

    return node == root


def compute_commitment_id(solutions: Sequence[CaptchaSolution]) -> str:
    """Root of the tree over the hashed solutions, in submission order."""
    return MerkleTree.build([hash_solution(s) for s in solutions]).root.hash
