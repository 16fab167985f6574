"""
Tabular Extractor

Turns an uploaded file into an ordered list of raw rows (column -> value).

Supported formats:
- json: a bare array of objects, an object with a "books" array, or a single
  object (one row)
- csv: first non-empty line is the header; RFC 4180 quoting
- xlsx / xls: first sheet, first row is the header

Values are left loosely typed; the normalizer does all coercion.
"""

import base64
import binascii
import csv
import io
import json
from pathlib import PurePath
from typing import Any, Union

import pandas as pd
from loguru import logger

from shelfwise.importing.errors import MalformedFileError, UnsupportedFormatError

RawImportRow = dict[str, Any]

SUPPORTED_FORMATS = ("json", "csv", "xlsx", "xls")

EXCEL_ENGINES = {
    "xlsx": "openpyxl",
    "xls": "xlrd",
}


def format_from_filename(filename: str) -> str:
    """
    Derive the declared format from a file extension.

    Raises:
        UnsupportedFormatError: Unknown or missing extension
    """
    suffix = PurePath(filename or "").suffix.lower().lstrip(".")
    if suffix not in SUPPORTED_FORMATS:
        raise UnsupportedFormatError(suffix or filename)
    return suffix


def extract_rows(data: Union[bytes, str], format: str) -> list[RawImportRow]:
    """
    Extract raw rows from file content.

    Args:
        data: File content. Spreadsheets sent as text must be base64.
        format: One of json, csv, xlsx, xls

    Returns:
        Rows in file order

    Raises:
        UnsupportedFormatError: format is not recognised
        MalformedFileError: content cannot be parsed or holds no rows
    """
    fmt = (format or "").strip().lower().lstrip(".")
    if fmt not in SUPPORTED_FORMATS:
        raise UnsupportedFormatError(format)

    if fmt == "json":
        rows = _extract_json(_as_text(data))
    elif fmt == "csv":
        rows = _extract_csv(_as_text(data))
    else:
        rows = _extract_spreadsheet(_as_bytes(data), fmt)

    if not rows:
        raise MalformedFileError("File contains no data rows")

    logger.debug(f"Extracted {len(rows)} rows from {fmt} input")
    return rows


def _as_text(data: Union[bytes, str]) -> str:
    if isinstance(data, str):
        return data.lstrip("\ufeff")
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        return data.decode("latin-1")


def _as_bytes(data: Union[bytes, str]) -> bytes:
    if isinstance(data, bytes):
        return data
    try:
        return base64.b64decode(data, validate=False)
    except (binascii.Error, ValueError) as e:
        raise MalformedFileError("Spreadsheet data is not valid base64", detail=str(e))


def _extract_json(text: str) -> list[RawImportRow]:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedFileError("Invalid JSON", detail=str(e))

    if isinstance(payload, dict):
        if isinstance(payload.get("books"), list):
            items = payload["books"]
        else:
            items = [payload]
    elif isinstance(payload, list):
        items = payload
    else:
        raise MalformedFileError("JSON must be an array of books or an object with a \"books\" array")

    rows = []
    for position, item in enumerate(items, start=1):
        if not isinstance(item, dict):
            raise MalformedFileError(
                "JSON books must be objects",
                detail=f"Element {position} is {type(item).__name__}",
            )
        rows.append(dict(item))

    return rows


def _is_blank(values) -> bool:
    return all(v is None or not str(v).strip() for v in values)


def _extract_csv(text: str) -> list[RawImportRow]:
    try:
        records = list(csv.reader(io.StringIO(text)))
    except csv.Error as e:
        raise MalformedFileError("Invalid CSV", detail=str(e))

    # Header is the first non-empty line
    header_index = next(
        (i for i, record in enumerate(records) if not _is_blank(record)),
        None,
    )
    if header_index is None:
        raise MalformedFileError("CSV file is empty")

    headers = [h.strip() for h in records[header_index]]

    rows = []
    for record in records[header_index + 1:]:
        if _is_blank(record):
            continue
        row = {}
        for i, header in enumerate(headers):
            if not header:
                continue
            row[header] = record[i].strip() if i < len(record) else ""
        rows.append(row)

    return rows


def _extract_spreadsheet(content: bytes, fmt: str) -> list[RawImportRow]:
    try:
        frame = pd.read_excel(
            io.BytesIO(content),
            sheet_name=0,
            header=0,
            engine=EXCEL_ENGINES[fmt],
        )
    except ImportError:
        raise
    except Exception as e:
        raise MalformedFileError(f"Could not read {fmt} spreadsheet", detail=str(e))

    frame = frame.dropna(how="all")
    frame.columns = [str(c).strip() for c in frame.columns]

    rows = []
    for record in frame.to_dict(orient="records"):
        row = {
            header: (None if _is_missing(value) else value)
            for header, value in record.items()
            if not header.startswith("Unnamed:")
        }
        if not _is_blank(row.values()):
            rows.append(row)

    return rows


def _is_missing(value) -> bool:
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False
