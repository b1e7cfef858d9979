"""
CSV error report for menu imports.

Derived from ImportResult.error_details only; generating it twice gives
the same text.
"""

import csv
import io

from models.menu_upload import ImportResultItemDetail

ERROR_REPORT_HEADER = ["ItemID", "ItemName", "ActionAttempted", "ErrorReason"]


def generate_error_report(error_details: list[ImportResultItemDetail]) -> str:
    """
    Render per-item import errors as CSV.

    Header: ItemID,ItemName,ActionAttempted,ErrorReason
    Cells are quoted only when they contain a comma, quote or newline.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(ERROR_REPORT_HEADER)
    for detail in error_details:
        writer.writerow([
            detail.id,
            detail.name or "N/A",
            detail.import_action.value if detail.import_action else "N/A",
            detail.error_reason or "",
        ])

    return buffer.getvalue()


def error_report_filename(job_id: str) -> str:
    return f"menu_import_errors_{job_id}.csv"
