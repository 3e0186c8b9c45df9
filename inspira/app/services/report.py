"""CSV export of every tester application."""
from __future__ import annotations

import csv
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
import io
import logging
from typing import Iterable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..domain.errors import EmptyReportError
from ..domain.models import EnrollmentRecord
from .enrollment import EnrollmentStore

logger = logging.getLogger(__name__)

REPORT_HEADER = ("이름", "이메일", "고유ID(UID)", "신청일시")
REPORT_FILENAME = "테스터_신청자_목록.csv"
REPORT_MEDIA_TYPE = "text/csv; charset=utf-8"
BOM = "\ufeff"


@dataclass(frozen=True)
class Report:
    payload: bytes
    rows: int
    filename: str = REPORT_FILENAME
    media_type: str = REPORT_MEDIA_TYPE


def resolve_timezone(name: str) -> tzinfo:
    if name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except ZoneInfoNotFoundError:
        logger.warning("unknown report timezone %r, using UTC", name, extra={"component": "ReportGenerator"})
        return timezone.utc


def format_applied_at(value: str, tz: tzinfo) -> str:
    """Render an ISO timestamp the way a ko-KR locale prints a date-time.

    ``2026-10-18T04:05:06.000Z`` in Asia/Seoul becomes ``2026. 10. 18. 오후 1:05:06``.
    Values that do not parse are returned untouched.
    """
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        moment = datetime.fromisoformat(text)
    except ValueError:
        return value
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    local = moment.astimezone(tz)
    meridiem = "오전" if local.hour < 12 else "오후"
    hour = local.hour % 12 or 12
    return (
        f"{local.year}. {local.month}. {local.day}. "
        f"{meridiem} {hour}:{local.minute:02d}:{local.second:02d}"
    )


def _one_line(value: str) -> str:
    # a row never spans lines, even when a field carries a line break
    return " ".join(value.splitlines())


def render_rows(records: Iterable[EnrollmentRecord], tz: tzinfo) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    for record in records:
        fields = [record.display_name, record.email, record.uid, format_applied_at(record.applied_at, tz)]
        writer.writerow([_one_line(field) for field in fields])
    return buffer.getvalue().rstrip("\n")


class ReportGenerator:
    def __init__(self, store: EnrollmentStore, tz: tzinfo = timezone.utc) -> None:
        self.store = store
        self.tz = tz

    async def generate_report(self) -> Report:
        records = await self.store.list_all()
        if not records:
            raise EmptyReportError("no tester applications to export")
        text = ",".join(REPORT_HEADER) + "\n" + render_rows(records, self.tz)
        logger.info("exported %s tester rows", len(records), extra={"component": "ReportGenerator"})
        return Report(payload=(BOM + text).encode("utf-8"), rows=len(records))
