"""
증명 메타데이터 테스트
"""

import datetime

import pytest

from zkstate.circuit.r1cs import ConstraintSystem
from zkstate.circuit.transfer import CIRCUIT_VERSION, CompiledCircuit
from zkstate.groth16.setup import setup
from zkstate.metadata import (
    REQUIRED_FIELDS, TOOL_VERSION, generate_proof_metadata, validate_metadata,
    verification_key_hash,
)


def _square(name="square"):
    cs = ConstraintSystem(name)
    y = cs.public_input("y")
    x = cs.private_input("x")
    cs.enforce(x, x, y, "square")
    return CompiledCircuit(name, None, 0, 0, cs.seal())


# ─────────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────────

@pytest.fixture(scope="module")
def compiled():
    return _square()


@pytest.fixture(scope="module")
def vk(compiled):
    return setup(compiled.cs, seed="meta")[1]


class TestGenerate:
    def test_fields(self, compiled, vk):
        now = datetime.datetime(2024, 1, 2, tzinfo=datetime.timezone.utc)
        meta = generate_proof_metadata("groth16", compiled, vk, now=now)
        assert meta["proving_system"] == "groth16"
        assert meta["circuit_name"] == "square"
        assert meta["circuit_version"] == CIRCUIT_VERSION
        assert meta["circuit_hash"] == compiled.cs.structure_hash()
        assert meta["num_constraints"] == 1
        assert meta["tool_version"].endswith(TOOL_VERSION)
        assert meta["generated_at"] == "2024-01-02T00:00:00+00:00"

    def test_vk_hash_stable(self, vk):
        assert verification_key_hash(vk) == verification_key_hash(vk)
        assert len(verification_key_hash(vk)) == 64

    def test_vk_hash_differs_per_setup(self, compiled, vk):
        other = setup(compiled.cs, seed="other")[1]
        assert verification_key_hash(other) != verification_key_hash(vk)

    def test_without_vk(self, compiled):
        assert generate_proof_metadata("r1cs-check", compiled)["verification_key_hash"] is None


class TestValidate:
    def test_complete(self, compiled, vk):
        meta = generate_proof_metadata("groth16", compiled, vk)
        assert validate_metadata(meta, compiled) == ([], [])

    def test_missing_fields(self):
        errors, _ = validate_metadata({})
        assert len(errors) == len(REQUIRED_FIELDS)

    def test_missing_vk_hash_is_warning(self, compiled):
        errors, warnings = validate_metadata(generate_proof_metadata("groth16", compiled))
        assert errors == []
        assert warnings == ["no verification key hash recorded"]

    def test_hash_mismatch(self, compiled, vk):
        meta = generate_proof_metadata("groth16", _square("renamed"), vk)
        errors, _ = validate_metadata(meta, compiled)
        assert errors == ["circuit hash does not match square"]

    def test_vk_mismatch(self, compiled, vk):
        meta = generate_proof_metadata("groth16", compiled, vk)
        other = setup(compiled.cs, seed="other")[1]
        errors, _ = validate_metadata(meta, compiled, other)
        assert errors == ["verification key hash does not match"]

    def test_vk_match(self, compiled, vk):
        meta = generate_proof_metadata("groth16", compiled, vk)
        assert validate_metadata(meta, compiled, vk) == ([], [])
