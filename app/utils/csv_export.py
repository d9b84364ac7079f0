"""CSV rendering for record exports.

Fields are quoted only when they contain a comma, double quote, CR or LF;
embedded quotes are doubled and rows end with ``\\n``. ``None`` renders as
an empty field.
"""

import csv
import io
from datetime import date, datetime
from enum import Enum
from typing import Any, Iterable, Sequence


def format_csv_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


def _render_row(values: Sequence[str]) -> str:
    buffer = io.StringIO()
    # CR and LF are both in the terminator, so fields holding either get quoted
    csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\r\n").writerow(values)
    return buffer.getvalue()[:-2] + "\n"


def render_csv(headers: Sequence[str], rows: Iterable[Sequence[Any]]) -> str:
    """Render a header row followed by data rows."""
    lines = [_render_row(list(headers))]
    for row in rows:
        lines.append(_render_row([format_csv_value(value) for value in row]))
    return "".join(lines)


def render_records(headers: Sequence[str], records: Iterable[Any]) -> str:
    """Render ORM objects by reading the attribute named by each header."""
    return render_csv(headers, ([getattr(record, name, None) for name in headers] for record in records))
