"""CSV export of a finished batch."""

import csv
import io
from datetime import date
from typing import Iterable, Optional

from metagen.models.result import MetadataResult

CSV_HEADERS = [
    "URL",
    "Page Title",
    "Meta Description",
    "OG Title",
    "OG Description",
    "Status",
    "Error",
]


def results_to_csv(results: Iterable[MetadataResult]) -> str:
    """Render *results* as CSV, one row per URL in the order given.

    Error rows keep their metadata cells empty so they stand out for
    manual follow-up.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for result in results:
        writer.writerow(
            [
                result.url,
                result.page_title,
                result.meta_description,
                result.og_title,
                result.og_description,
                result.status,
                result.error or "",
            ]
        )
    return buffer.getvalue()


def export_filename(on: Optional[date] = None) -> str:
    return f"metadata-results-{(on or date.today()).isoformat()}.csv"
