"""
Battery Line MES - Label Printing Collaborator
Version: 1.1.0

Changelog:
v1.1.0 (2026-10-05): Print failures recorded as FAILED events instead of
                      aborting the scan that triggered them
v1.0.0 (2026-09-28): Initial print dispatch

Label formats and printer drivers live outside the MES. The core only hands
over a PrintJob and records the outcome in the print log. The default
printer logs the job; the plant integration replaces it with set_printer().
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from config import settings
from services import ledger

logger = logging.getLogger(__name__)


@dataclass
class PrintJob:
    """What the printing side needs to resolve and print a label"""
    reference: str                      # serial number, or order number for lot labels
    part_number: str
    product_code: str
    label_type: str
    exclude_label_types: List[str] = field(default_factory=list)
    operator_id: Optional[str] = None
    job_description: Optional[str] = None


class LabelPrinter:
    """Default printer: logs the job and reports success"""

    async def send(self, job: PrintJob) -> bool:
        logger.info(
            f"Print {job.label_type} for {job.reference} "
            f"(PN {job.part_number}, SKU {job.product_code})"
            + (f" excluding {','.join(job.exclude_label_types)}" if job.exclude_label_types else "")
        )
        return True


_printer: LabelPrinter = LabelPrinter()


def set_printer(printer: LabelPrinter):
    global _printer
    _printer = printer


def get_printer() -> LabelPrinter:
    return _printer


async def print_label(db, job: PrintJob) -> bool:
    """Send a job and record SENT / FAILED / SKIPPED in the print log"""
    if not settings.PRINT_ENABLED:
        await ledger.append_print(db, job.reference, job.label_type, "SKIPPED",
                                  "Printing disabled", job.operator_id)
        return False

    message = job.job_description
    try:
        ok = await _printer.send(job)
    except Exception as e:
        logger.warning(f"Print {job.label_type} for {job.reference} failed: {e}")
        ok = False
        message = str(e)

    await ledger.append_print(db, job.reference, job.label_type,
                              "SENT" if ok else "FAILED", message, job.operator_id)
    return ok
