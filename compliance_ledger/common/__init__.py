"""
Common utilities shared by the ledger and the audit aggregator:
- Exception hierarchy and FastAPI handlers
- Prometheus metrics
- Pagination policy
- UTC clock helpers
"""

from compliance_ledger.common.exceptions import (
    DataIntegrityError,
    DecisionConflictError,
    DecisionNotFoundError,
    ErrorCode,
    ErrorResponse,
    LedgerError,
    NotFoundError,
    PolicyEngineUnavailableError,
    UpstreamAuditSourceError,
    ValidationError,
    register_exception_handlers,
)
from compliance_ledger.common.metrics import get_content_type, get_metrics, track_time
from compliance_ledger.common.pagination import clamp_page, paginate, total_pages
from compliance_ledger.common.clock import Clock, as_utc, utcnow

__all__ = [
    # Exceptions
    "DataIntegrityError",
    "DecisionConflictError",
    "DecisionNotFoundError",
    "ErrorCode",
    "ErrorResponse",
    "LedgerError",
    "NotFoundError",
    "PolicyEngineUnavailableError",
    "UpstreamAuditSourceError",
    "ValidationError",
    "register_exception_handlers",
    # Metrics
    "get_content_type",
    "get_metrics",
    "track_time",
    # Pagination
    "clamp_page",
    "paginate",
    "total_pages",
    # Time
    "Clock",
    "as_utc",
    "utcnow",
]
