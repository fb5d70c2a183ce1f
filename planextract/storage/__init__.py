"""
Report storage, owned by callers of the extraction pipeline.
"""

from .report_store import (
    DEFAULT_TTL_SECONDS,
    InMemoryReportStore,
    ReportStore,
    StoredReport,
)
