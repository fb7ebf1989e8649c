"""
Payload hashing for enterprise audit entries.

The hash covers exactly the canonical fields below. Serialization uses sorted
keys and ISO-8601 UTC timestamps so identical inputs always hash identically.
"""

from datetime import datetime
from typing import Any, Optional
import hashlib
import json

from compliance_ledger.common.clock import as_utc

HASHED_FIELDS = (
    "id",
    "asset_id",
    "network",
    "category",
    "action_type",
    "performed_by",
    "performed_at",
    "success",
    "affected_address",
    "amount",
)


def _canonical(value: Any) -> Any:
    if isinstance(value, datetime):
        return as_utc(value).isoformat()
    if hasattr(value, "value"):  # enums
        return value.value
    return value


def compute_payload_hash(
    id: str,
    asset_id: Optional[int],
    network: Optional[str],
    category: Any,
    action_type: str,
    performed_by: str,
    performed_at: datetime,
    success: bool,
    affected_address: Optional[str],
    amount: Optional[int],
) -> str:
    """SHA-256 hex digest of the canonical field set."""
    payload = {
        "id": id,
        "asset_id": asset_id,
        "network": network,
        "category": _canonical(category),
        "action_type": action_type,
        "performed_by": performed_by,
        "performed_at": _canonical(performed_at),
        "success": success,
        "affected_address": affected_address,
        "amount": amount,
    }
    json_str = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(json_str.encode("utf-8")).hexdigest()


def hash_fields(fields: dict) -> str:
    """Hash the canonical subset of a field mapping."""
    return compute_payload_hash(**{name: fields.get(name) for name in HASHED_FIELDS})


def verify_payload_hash(entry) -> bool:
    """True when the stored hash still matches the entry's canonical fields."""
    return hash_fields(entry.model_dump()) == entry.payload_hash
