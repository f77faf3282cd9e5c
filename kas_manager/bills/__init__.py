"""Monthly dues: generation, payment toggling and summaries."""

from kas_manager.bills.generator import (
    BillGenerator,
    GenerationResult,
    plan_missing_bills,
)
from kas_manager.bills.summary import (
    BillSummary,
    ResidentDues,
    bills_by_resident,
    summarize_bills,
)

__all__ = [
    "BillGenerator",
    "BillSummary",
    "GenerationResult",
    "ResidentDues",
    "bills_by_resident",
    "plan_missing_bills",
    "summarize_bills",
]
