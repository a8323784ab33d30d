"""
gst_services -- orchestration over the engines.

Services wire kernel records, engine calculations and configuration
together. They are stateless: every call receives a LedgerSnapshot and
returns derived values or a new snapshot.
"""

from gst_services.bookkeeping import BookkeepingResult, BookkeepingService, LedgerSnapshot

__all__ = [
    "BookkeepingService",
    "BookkeepingResult",
    "LedgerSnapshot",
]
