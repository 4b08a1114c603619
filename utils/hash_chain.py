import hashlib
import json
from datetime import datetime
from typing import Any, Dict, List, Optional

from utils.datetime_helpers import format_utc_datetime

GENESIS = "GENESIS"


def compute_entry_hash(
    prev_hash: Optional[str],
    visit_id: str,
    stage: str,
    verdict: Dict[str, Any],
    reason: str,
    recorded_at: datetime,
) -> str:
    payload = json.dumps(
        {
            "visit_id": visit_id,
            "stage": stage,
            "verdict": verdict,
            "reason": reason,
            "recorded_at": format_utc_datetime(recorded_at),
            "prev_hash": prev_hash or GENESIS,
        },
        sort_keys=True,
        separators=(",", ":"),
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def validate_chain(entries: List[Any]) -> Dict[str, Any]:
    """
    Recompute the hash chain over entries in append order.

    Each entry needs visit_id, stage, verdict, reason, recorded_at,
    prev_hash and entry_hash attributes.
    """
    errors: List[str] = []

    for i, entry in enumerate(entries):
        expected_prev = None if i == 0 else entries[i - 1].entry_hash
        if entry.prev_hash != expected_prev:
            errors.append(
                f"Entry {i}: Invalid prev_hash. Expected: {expected_prev}, Got: {entry.prev_hash}"
            )

        stage = entry.stage.value if hasattr(entry.stage, "value") else entry.stage
        expected_hash = compute_entry_hash(
            entry.prev_hash,
            entry.visit_id,
            stage,
            entry.verdict,
            entry.reason,
            entry.recorded_at,
        )
        if entry.entry_hash != expected_hash:
            errors.append(
                f"Entry {i}: Hash mismatch. Expected: {expected_hash}, Got: {entry.entry_hash}"
            )

    return {"is_valid": len(errors) == 0, "errors": errors}
