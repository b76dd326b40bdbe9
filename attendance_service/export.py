"""
CSV export module.

Produces the spreadsheet-friendly attendance log: UTF-8 with BOM,
every field quoted, header Name,Date,Time.
"""

import csv
import io
from datetime import date
from typing import Dict, Iterable, List, Optional

from .models import AttendanceRecord

CSV_BOM = '\ufeff'
CSV_HEADER = ['Name', 'Date', 'Time']


def export_filename(day: Optional[date] = None) -> str:
    """Download filename for the given day (default: today)."""
    day = day or date.today()
    return f'attendance_log_{day.isoformat()}.csv'


def export_csv(records: Iterable[AttendanceRecord]) -> str:
    """
    Render records as CSV text, one row per record, in the given order.
    
    Args:
        records: Records to export
    
    Returns:
        CSV text starting with a byte order mark
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator='\n')
    writer.writerow(CSV_HEADER)
    for record in records:
        writer.writerow([record.name, record.date, record.time])
    return CSV_BOM + buffer.getvalue()


def parse_csv(text: str) -> List[Dict[str, str]]:
    """
    Parse an exported attendance CSV back into rows.
    
    Args:
        text: CSV text, with or without byte order mark
    
    Returns:
        List of dicts keyed by Name, Date and Time
    """
    if text.startswith(CSV_BOM):
        text = text[len(CSV_BOM):]
    reader = csv.DictReader(io.StringIO(text))
    return [dict(row) for row in reader]
