from __future__ import annotations

import logging
import os
import zipfile
from datetime import date, datetime, time
from typing import BinaryIO, Optional

import pandas as pd
from openpyxl.utils.exceptions import InvalidFileException
from xlrd import XLRDError

from ..core.constants import IMPORT_MAX_ROWS
from ..core.exceptions import ValidationError
from .model import RawPunchRow
from .service import normalize_biometric_id

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".xlsx", ".xls", ".csv"}

# Header aliases seen in device exports, compared after stripping to upper-case alphanumerics.
ID_ALIASES = ["BIOMETRICID", "ACNO", "ENNO", "USERID", "USERNO", "BADGENO", "EMPLOYEENO", "PERSONNELID", "CODIGO", "ID", "NO"]
DATETIME_ALIASES = ["DATETIME", "FECHAHORA", "CHECKTIME", "TIMESTAMP", "PUNCHEDAT", "MARCACION", "TIME"]
DATE_ALIASES = ["DATE", "FECHA"]
TIME_ALIASES = ["HORA", "TIME", "HOUR"]


def _standardize(col) -> str:
    return "".join(ch.upper() for ch in str(col) if ch.isalnum())


def _engine_for(ext: str) -> Optional[str]:
    if ext == ".xlsx":
        return "openpyxl"
    if ext == ".xls":
        return "xlrd"
    return None


class PunchFileReader:
    """Reads a device export (.xlsx, .xls or .csv) into `RawPunchRow`s.

    Whole-file problems (unsupported type, unreadable file, missing columns)
    raise ValidationError; bad rows are returned with `error` set.
    """

    def __init__(self, *, max_rows: int = IMPORT_MAX_ROWS):
        self._max_rows = int(max_rows)

    def read(self, stream: BinaryIO, filename: str) -> list[RawPunchRow]:
        ext = os.path.splitext(filename or "")[1].lower()
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationError(f"Unsupported file type {ext or '(none)'}; upload .xlsx, .xls or .csv")

        try:
            if ext == ".csv":
                df = pd.read_csv(stream, dtype=str)
            else:
                df = pd.read_excel(stream, engine=_engine_for(ext), dtype=object)
        except (ValueError, ImportError, OSError, zipfile.BadZipFile, InvalidFileException, XLRDError) as e:
            raise ValidationError(f"Could not read {filename}: {e}") from e

        if len(df.index) > self._max_rows:
            raise ValidationError(f"File has {len(df.index)} rows; the limit is {self._max_rows}")

        df.columns = [_standardize(c) for c in df.columns]
        id_col = self._pick(df, ID_ALIASES)
        if id_col is None:
            raise ValidationError("No biometric id column found")

        date_col = self._pick(df, DATE_ALIASES)
        time_col = self._pick(df, TIME_ALIASES) if date_col is not None else None
        datetime_col = None
        if date_col is None or time_col is None:
            datetime_col = self._pick(df, DATETIME_ALIASES)
            if datetime_col is None:
                raise ValidationError("No timestamp column found (expected a date-time or separate date and time)")

        rows: list[RawPunchRow] = []
        # Spreadsheet row numbers: header is row 1.
        for offset, record in enumerate(df.to_dict(orient="records")):
            row_number = offset + 2
            raw_id = record.get(id_col)
            biometric_id = "" if _is_blank(raw_id) else normalize_biometric_id(raw_id)
            if datetime_col is not None:
                raw_value = record.get(datetime_col)
            else:
                raw_value = _combine(record.get(date_col), record.get(time_col))

            if not biometric_id and _is_blank(raw_value):
                continue
            if not biometric_id:
                rows.append(RawPunchRow(row_number=row_number, biometric_id="", error="Missing biometric id"))
                continue

            punched_at = _to_datetime(raw_value)
            if punched_at is None:
                rows.append(
                    RawPunchRow(
                        row_number=row_number,
                        biometric_id=biometric_id,
                        error=f"Invalid timestamp {_text(raw_value)!r}",
                    )
                )
                continue
            rows.append(RawPunchRow(row_number=row_number, biometric_id=biometric_id, punched_at=punched_at))

        logger.info("Read %s punch rows from %s", len(rows), filename)
        return rows

    @staticmethod
    def _pick(df: pd.DataFrame, aliases: list[str]) -> Optional[str]:
        for alias in aliases:
            if alias in df.columns:
                return alias
        return None


def _is_blank(value) -> bool:
    if value is None:
        return True
    try:
        if pd.isna(value):
            return True
    except (TypeError, ValueError):
        pass
    return str(value).strip() == ""


def _text(value) -> str:
    return "" if _is_blank(value) else str(value).strip()


# Day-first exports are the norm for the devices in use; ISO strings are tried first.
_FORMATS = (
    "%d/%m/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M",
    "%d-%m-%Y %H:%M:%S",
    "%d-%m-%Y %H:%M",
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d %H:%M",
)


def _to_datetime(value) -> Optional[datetime]:
    if _is_blank(value):
        return None
    if isinstance(value, pd.Timestamp):
        result = value.to_pydatetime()
    elif isinstance(value, datetime):
        result = value
    else:
        result = _parse_text(str(value).strip())
        if result is None:
            return None
    if result.tzinfo is not None:
        result = result.astimezone().replace(tzinfo=None)
    return result.replace(microsecond=0)


def _parse_text(text: str) -> Optional[datetime]:
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        pass
    for fmt in _FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def _combine(date_value, time_value):
    """Separate date and time cells: Excel hands back date/datetime and time objects."""
    if _is_blank(date_value) or _is_blank(time_value):
        return None
    if isinstance(date_value, (datetime, pd.Timestamp)):
        date_value = date_value.date()
    if isinstance(date_value, date) and isinstance(time_value, time):
        return datetime.combine(date_value, time_value)
    if isinstance(date_value, date):
        date_value = date_value.isoformat()
    if isinstance(time_value, (datetime, pd.Timestamp)):
        time_value = time_value.time()
    return f"{_text(date_value)} {_text(time_value)}"
