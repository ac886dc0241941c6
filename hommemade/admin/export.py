"""CSV export of stored submissions."""

from __future__ import annotations

import csv
import io
from datetime import date
from typing import Iterable, Iterator, Optional

from hommemade.schemas.submission import StoredSubmission

CSV_HEADERS = [
    "Submission ID",
    "Timestamp",
    "Name",
    "Email",
    "Phone",
    "Brand Name",
    "Industry",
    "Online Presence",
    "Why Now",
    "Success Metrics",
    "Struggles",
    "Other Struggle",
    "Brand Voice",
    "Brand Tone",
    "Avoidances",
    "Aesthetic References",
    "Offering",
    "Value Provision",
    "Dream Audience",
    "Feedback",
    "Communication Preference",
    "Additional Info",
    "Files Count",
    "File Names",
]

# Document keys for the plain text columns between Timestamp and Struggles,
# and between Struggles and Files Count.
_LEAD_FIELDS = [
    "id", "timestamp", "name", "email", "phone", "brandName", "industry",
    "onlinePresence", "whyNow", "successMetrics",
]
_TAIL_FIELDS = [
    "otherStruggle", "brandVoice", "brandTone", "avoidances", "aestheticReferences",
    "offering", "valueProvision", "dreamAudience", "feedback", "communication",
    "additionalInfo",
]


def _text(value) -> str:
    return "" if value is None else str(value)


def submission_row(submission: StoredSubmission) -> list[str]:
    doc = submission.model_dump()
    files = doc.get("files") or []
    struggles = doc.get("struggles") or []

    row = [_text(doc.get(f)) for f in _LEAD_FIELDS]
    row.append(", ".join(str(s) for s in struggles) if isinstance(struggles, list) else _text(struggles))
    row.extend(_text(doc.get(f)) for f in _TAIL_FIELDS)
    row.append(str(len(files)) if isinstance(files, list) else "0")
    row.append(
        "; ".join(_text(f.get("fileName")) for f in files if isinstance(f, dict))
        if isinstance(files, list)
        else ""
    )
    return row


def iter_csv(submissions: Iterable[StoredSubmission]) -> Iterator[str]:
    """Yield the CSV one line at a time (header first).

    Fields containing a comma, quote or newline are quoted, with quotes doubled.
    """
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")

    writer.writerow(CSV_HEADERS)
    yield output.getvalue()
    output.seek(0)
    output.truncate(0)

    for submission in submissions:
        writer.writerow(submission_row(submission))
        yield output.getvalue()
        output.seek(0)
        output.truncate(0)


def generate_csv(submissions: Iterable[StoredSubmission]) -> str:
    return "".join(iter_csv(submissions))


def export_filename(today: Optional[date] = None) -> str:
    return f"submissions-{(today or date.today()).isoformat()}.csv"
