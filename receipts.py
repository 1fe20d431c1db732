"""
receipts.py - Structured Emission Foundation

Canonical emit_receipt() for the engine. Every module that reports an
operation (run completion, rejected config, leaderboard insert, spectral
snapshot, anomaly) builds its record here so all records share one shape.

Payloads are fingerprinted with dual_hash (SHA256:BLAKE3). The fingerprint
identifies a record; it is not an integrity guarantee for stored results.
"""

import hashlib
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Union

import blake3

__all__ = [
    "TENANT_ID",
    "dual_hash",
    "emit_receipt",
    "write_receipt_jsonl",
    "append_receipts",
    "receipts_of_type",
    "StopRule",
    "RECEIPT_SCHEMA",
]

# =============================================================================
# CONSTANTS
# =============================================================================

TENANT_ID = "inversion-sim"

RECEIPT_SCHEMA = {
    "receipt_type": "str",
    "ts": "ISO8601",
    "tenant_id": "str",
    "payload_hash": "str (SHA256:BLAKE3)",
}


# =============================================================================
# CORE FUNCTION 1: dual_hash
# =============================================================================

def dual_hash(data: Union[bytes, str]) -> str:
    """
    SHA256:BLAKE3 fingerprint of a payload.

    Args:
        data: Bytes or string to hash

    Returns:
        str: "sha256_hex:blake3_hex" format
    """
    if isinstance(data, str):
        data = data.encode()
    sha = hashlib.sha256(data).hexdigest()
    b3 = blake3.blake3(data).hexdigest()
    return f"{sha}:{b3}"


# =============================================================================
# CORE FUNCTION 2: emit_receipt
# =============================================================================

def emit_receipt(receipt_type: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Build a receipt for one engine operation.

    Args:
        receipt_type: Type identifier for this receipt
        data: Receipt payload (tenant_id defaults to TENANT_ID)

    Returns:
        dict: Complete receipt with ts, tenant_id, payload_hash, and data fields
    """
    payload = dict(data)
    payload.setdefault("tenant_id", TENANT_ID)
    receipt = {
        "receipt_type": receipt_type,
        "ts": datetime.now(timezone.utc).isoformat(),
        "payload_hash": dual_hash(json.dumps(payload, sort_keys=True, default=str)),
        **payload
    }
    return receipt


# =============================================================================
# CORE FUNCTION 3: write_receipt_jsonl
# =============================================================================

def write_receipt_jsonl(receipt: Dict[str, Any], fh) -> None:
    """
    Append receipt as single JSON line to file handle.

    Args:
        receipt: Receipt dict to write
        fh: File handle (must be open for writing)
    """
    line = json.dumps(receipt, separators=(",", ":"), default=str)
    fh.write(line + "\n")


def append_receipts(receipts: Iterable[Dict[str, Any]], path: Union[str, Path]) -> int:
    """
    Append receipts to a JSONL file, creating parent directories.

    Returns:
        int: Number of receipts written
    """
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    written = 0
    with open(p, "a") as fh:
        for receipt in receipts:
            write_receipt_jsonl(receipt, fh)
            written += 1
    return written


def receipts_of_type(ledger: List[Dict[str, Any]], receipt_type: str) -> List[Dict[str, Any]]:
    """Filter a receipt ledger by receipt_type."""
    return [r for r in ledger if r.get("receipt_type") == receipt_type]


# =============================================================================
# STOPRULE EXCEPTION
# =============================================================================

class StopRule(Exception):
    """Raised when a stoprule triggers. Never catch silently."""
    pass
