"""
CSV export of a day's reservations for the office staff.
"""

import csv
import io
from datetime import date as _date
from typing import Iterable

from ..domain.models import to_date
from .dto import ReservationRow

HEADER = [
    "#",
    "Начало",
    "Конец",
    "Услуга",
    "Telegram",
    "ФИО (лат)",
    "ФИО (кир)",
    "Гражданство",
    "Дата прибытия",
]


def reservations_to_csv(rows: Iterable[ReservationRow]) -> bytes:
    """
    Render reservation rows as CSV.

    The result is UTF-8 with a byte-order mark so spreadsheet programs
    detect the encoding of the Cyrillic columns.
    """
    buffer = io.StringIO(newline="")
    writer = csv.writer(buffer)
    writer.writerow(HEADER)

    for number, row in enumerate(rows, 1):
        writer.writerow([
            number,
            row.slot_start.format("HH:mm"),
            row.slot_end.format("HH:mm"),
            row.service.label,
            f"t.me/{row.username}" if row.username else "",
            row.full_name_lat,
            row.full_name_cyr,
            row.citizenship,
            to_date(row.arrival_date).format("DD.MM.YYYY"),
        ])

    return buffer.getvalue().encode("utf-8-sig")


def export_file_name(date: _date) -> str:
    return f"reservations_{to_date(date).format('YYYY-MM-DD')}.csv"
