"""CSV rendering for the admin submission export."""

import csv
from datetime import date
from io import StringIO
from typing import Any, Dict, Iterable, List, Optional

EXPORT_FIELDS = [
    "id",
    "rulemaking_id",
    "rulemaking_title",
    "agency",
    "docket_id",
    "user_name",
    "user_email",
    "user_city",
    "user_state",
    "user_zip",
    "personal_story",
    "why_it_matters",
    "experiences",
    "concerns",
    "generated_comment",
    "final_comment",
    "submission_status",
    "federal_register_submission_id",
    "recaptcha_verified",
    "created_at",
    "submitted_at",
]


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def render_csv(rows: Iterable[Dict[str, Any]], fieldnames: Optional[List[str]] = None) -> str:
    """Render export rows as CSV text with a header line.

    Missing values become empty cells; columns not in ``fieldnames`` are
    dropped.
    """
    fieldnames = fieldnames or EXPORT_FIELDS
    buf = StringIO()
    writer = csv.DictWriter(buf, fieldnames=fieldnames, extrasaction="ignore")
    writer.writeheader()
    for row in rows:
        writer.writerow({name: _cell(row.get(name)) for name in fieldnames})
    return buf.getvalue()


def parse_csv(text: str) -> List[Dict[str, Optional[str]]]:
    """Read CSV produced by ``render_csv`` back into rows; empty cells are None."""
    reader = csv.DictReader(StringIO(text))
    return [{key: (value if value != "" else None) for key, value in row.items()} for row in reader]


def export_filename(today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"submissions_{today.isoformat()}.csv"
