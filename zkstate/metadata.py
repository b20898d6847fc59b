"""
증명 메타데이터
===============

커밋된 전송마다 붙는 메타데이터. 증명을 만든 회로 구조와 검증 키를
고정하므로, 저장된 증명을 나중에 검증할 때 같은 산출물인지 대조할 수 있다.

  | 필드                  | 필수 | 내용                          |
  |-----------------------|------|-------------------------------|
  | proving_system        | O    | "groth16" 등                  |
  | circuit_name          | O    | circuit_id                    |
  | circuit_version       | O    | 회로 버전                     |
  | circuit_hash          | O    | 제약 구조 해시                |
  | verification_key_hash |      | 없으면 경고                   |
  | tool_version          |      |                               |
  | generated_at          |      | ISO 8601 (UTC)                |
"""

import datetime
import hashlib
import json

from zkstate.serializers import serialize_vk

TOOL_NAME = "zkstate"
TOOL_VERSION = "0.1.0"

REQUIRED_FIELDS = ("proving_system", "circuit_name", "circuit_version", "circuit_hash")


def verification_key_hash(vk):
    """검증 키의 정규 JSON 형태에 대한 SHA-256. vk가 None이면 None."""
    if vk is None:
        return None
    blob = json.dumps(serialize_vk(vk), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(blob.encode()).hexdigest()


def generate_proof_metadata(proving_system, compiled, vk=None, now=None):
    now = now or datetime.datetime.now(datetime.timezone.utc)
    return {
        "proving_system": proving_system,
        "circuit_name": compiled.name,
        "circuit_version": compiled.version,
        "circuit_hash": compiled.circuit_hash,
        "num_constraints": compiled.num_constraints,
        "verification_key_hash": verification_key_hash(vk),
        "tool_version": f"{TOOL_NAME} {TOOL_VERSION}",
        "generated_at": now.isoformat(),
    }


def validate_metadata(metadata, compiled=None, vk=None):
    """(errors, warnings)를 반환한다.

    필수 필드 누락은 오류, 검증 키 해시 누락은 경고다. compiled가 주어지면
    회로 해시가, vk가 주어지면 검증 키 해시가 일치해야 한다.
    """
    errors = []
    warnings = []
    for field in REQUIRED_FIELDS:
        if not metadata.get(field):
            errors.append(f"missing required field: {field}")
    if metadata.get("verification_key_hash") is None:
        warnings.append("no verification key hash recorded")
    if compiled is not None and metadata.get("circuit_hash") not in (None, compiled.circuit_hash):
        errors.append(f"circuit hash does not match {compiled.name}")
    recorded = metadata.get("verification_key_hash")
    if vk is not None and recorded is not None and recorded != verification_key_hash(vk):
        errors.append("verification key hash does not match")
    return errors, warnings
