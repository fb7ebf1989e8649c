"""
CSV and JSON export of enterprise audit entries for regulatory reporting.

Exports read the full filtered set in one fan-out and truncate it to
max_records (never more than MAX_EXPORT_RECORDS).
"""

from datetime import datetime
from typing import Any, List
import csv
import io
import json

from pydantic.alias_generators import to_camel
import structlog

from compliance_ledger.audit.schemas import EnterpriseAuditLogEntry

logger = structlog.get_logger(__name__)

MAX_EXPORT_RECORDS = 10000

CSV_COLUMNS = [
    ("Id", "id"),
    ("AssetId", "asset_id"),
    ("Network", "network"),
    ("Category", "category"),
    ("ActionType", "action_type"),
    ("PerformedBy", "performed_by"),
    ("PerformedAt", "performed_at"),
    ("Success", "success"),
    ("ErrorMessage", "error_message"),
    ("AffectedAddress", "affected_address"),
    ("OldStatus", "old_status"),
    ("NewStatus", "new_status"),
    ("Notes", "notes"),
    ("ToAddress", "to_address"),
    ("TransferAllowed", "transfer_allowed"),
    ("DenialReason", "denial_reason"),
    ("Amount", "amount"),
    ("Role", "role"),
    ("ItemCount", "item_count"),
    ("SourceSystem", "source_system"),
    ("CorrelationId", "correlation_id"),
    ("PayloadHash", "payload_hash"),
]

CSV_HEADER = [header for header, _ in CSV_COLUMNS]


def effective_max_records(max_records: int) -> int:
    return max(1, min(max_records, MAX_EXPORT_RECORDS))


def _format_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, bool):
        return "true" if value else "false"
    if hasattr(value, "value"):
        return str(value.value)
    return str(value)


def entries_to_csv(entries: List[EnterpriseAuditLogEntry]) -> str:
    """Render entries as CSV text with a fixed header row."""
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for entry in entries:
        writer.writerow([_format_value(getattr(entry, field)) for _, field in CSV_COLUMNS])

    content = output.getvalue()
    logger.debug("audit_csv_rendered", record_count=len(entries), size_bytes=len(content.encode()))
    return content


def camelize(value: Any) -> Any:
    """Recursively convert snake_case dict keys to camelCase."""
    if isinstance(value, dict):
        return {to_camel(k): camelize(v) for k, v in value.items()}
    if isinstance(value, list):
        return [camelize(v) for v in value]
    return value


def document_to_json(document: dict) -> str:
    content = json.dumps(camelize(document), indent=2)
    logger.debug("audit_json_rendered", size_bytes=len(content.encode()))
    return content
