# lead_finder/reporting/writer.py
"""
Writers to persist collected leads as JSON and CSV.
"""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Iterable, Tuple

from .schemas import Lead, sheet_row

SHEET_HEADERS = [
    "Timestamp",
    "Post URL",
    "Author",
    "Keywords Matched",
    "Post Content",
    "Emails",
    "Phone Numbers",
    "Status",
]


def write_leads(leads: Iterable[Lead], out_dir: Path) -> Tuple[Path, Path]:
    """
    Write leads into out_dir as leads.json and leads.csv.
    Returns (json_path, csv_path).
    """
    out_dir.mkdir(parents=True, exist_ok=True)
    items = list(leads)

    json_path = out_dir / "leads.json"
    csv_path = out_dir / "leads.csv"

    # JSON: store layout
    json_path.write_text(
        json.dumps([lead.to_store() for lead in items], indent=2, ensure_ascii=False),
        encoding="utf-8",
    )

    # CSV: same columns as the spreadsheet export
    with csv_path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(SHEET_HEADERS)
        for lead in items:
            writer.writerow(sheet_row(lead))

    return json_path, csv_path
