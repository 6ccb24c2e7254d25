"""Spreadsheet decoding — CSV and Excel uploads into header-keyed records.

The decoder knows nothing about import types: it turns bytes into an ordered
list of ``{header: cell}`` dicts. Header normalization lives here as well so
that "E-mail", "Email " and "e_mail" all reach the validator as ``email``.
"""
import csv
import io
import logging
import re
import unicodedata
from dataclasses import dataclass
from datetime import date, datetime, time
from pathlib import Path

import numpy as np
import pandas as pd

from app.schemas.imports import CellValue
from app.services.import_types import is_blank

logger = logging.getLogger(__name__)

# ─── Constants ───

CSV_EXTENSIONS = (".csv",)
EXCEL_ENGINES = {".xlsx": "openpyxl", ".xls": "xlrd"}
SUPPORTED_EXTENSIONS = CSV_EXTENSIONS + tuple(EXCEL_ENGINES)

EMPTY_FILE_MESSAGE = "Planilha vazia ou sem dados válidos"

# Applied after normalization, for spellings the character rules cannot merge
HEADER_ALIASES = {
    "e_mail": "email",
}


class FileDecodeError(ValueError):
    """The upload could not be turned into at least one data row."""


@dataclass
class DecodedSheet:
    headers: list[str]
    records: list[dict[str, CellValue]]


# ─── Header normalization ───

def normalize_key(key: object) -> str:
    """Canonical field name: lower-case ASCII, underscores, ``[a-z0-9_]`` only."""
    text = str(key).strip().lower()
    text = unicodedata.normalize("NFD", text)
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    text = re.sub(r"\s+", "_", text)
    text = re.sub(r"[^a-z0-9_]", "", text)
    return HEADER_ALIASES.get(text, text)


def normalize_record(record: dict[str, CellValue]) -> dict[str, CellValue]:
    # Headers that collapse to the same key keep the first non-blank value
    normalized: dict[str, CellValue] = {}
    for raw_key, value in record.items():
        key = normalize_key(raw_key)
        if key not in normalized or is_blank(normalized[key]):
            normalized[key] = value
    return normalized


# ─── Entry point ───

def file_extension(file_name: str) -> str:
    return Path(file_name).suffix.lower()


def decode_file(file_name: str, content: bytes) -> DecodedSheet:
    """Decode an uploaded CSV/XLSX/XLS file.

    Raises:
        FileDecodeError: unsupported extension, unreadable bytes, or no data rows.
    """
    ext = file_extension(file_name)
    if ext in CSV_EXTENSIONS:
        sheet = _decode_csv(content)
    elif ext in EXCEL_ENGINES:
        sheet = _decode_excel(content, EXCEL_ENGINES[ext])
    else:
        raise FileDecodeError(
            f"Tipo de arquivo não suportado. Use: {', '.join(SUPPORTED_EXTENSIONS)}"
        )

    if not sheet.records:
        raise FileDecodeError(EMPTY_FILE_MESSAGE)

    logger.info(
        "decode_file: %s → %d columns, %d rows", file_name, len(sheet.headers), len(sheet.records)
    )
    return sheet


# ─── CSV ───

def _decode_text(content: bytes) -> str:
    # Excel on Windows exports CSV as cp1252 unless told otherwise
    for encoding in ("utf-8-sig", "cp1252"):
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise FileDecodeError("Não foi possível ler o arquivo: codificação de texto não reconhecida")


def _detect_delimiter(header_line: str) -> str:
    """Semicolon when the header uses more semicolons than commas, else comma."""
    return ";" if header_line.count(";") > header_line.count(",") else ","


def _decode_csv(content: bytes) -> DecodedSheet:
    text = _decode_text(content)
    first_line = next((line for line in text.splitlines() if line.strip()), "")
    if not first_line:
        raise FileDecodeError(EMPTY_FILE_MESSAGE)

    reader = csv.reader(io.StringIO(text, newline=""), delimiter=_detect_delimiter(first_line))
    try:
        rows = [row for row in reader if any(cell.strip() for cell in row)]
    except csv.Error as exc:
        raise FileDecodeError(f"CSV inválido: {exc}") from exc

    return _build_sheet(rows)


# ─── Excel ───

def _decode_excel(content: bytes, engine: str) -> DecodedSheet:
    try:
        frame = pd.read_excel(
            io.BytesIO(content),
            sheet_name=0,
            header=None,
            dtype=object,
            engine=engine,
        )
    except Exception as exc:
        logger.warning("decode_file: %s engine could not open workbook: %s", engine, exc)
        raise FileDecodeError("Não foi possível ler a planilha") from exc

    frame = frame.dropna(how="all")
    return _build_sheet(frame.values.tolist())


# ─── Shared ───

def _build_sheet(rows: list[list]) -> DecodedSheet:
    if not rows:
        return DecodedSheet(headers=[], records=[])

    headers = _unique_headers(rows[0])
    records: list[dict[str, CellValue]] = []
    for raw in rows[1:]:
        cells = [cell_value(v) for v in raw[: len(headers)]]
        cells += [None] * (len(headers) - len(cells))
        if all(c is None for c in cells):
            continue
        records.append(dict(zip(headers, cells)))
    return DecodedSheet(headers=headers, records=records)


def _unique_headers(raw_headers: list) -> list[str]:
    headers: list[str] = []
    seen: dict[str, int] = {}
    for idx, raw in enumerate(raw_headers, start=1):
        value = cell_value(raw)
        name = str(value).strip() if value is not None else ""
        if not name:
            name = f"coluna_{idx}"
        if name in seen:
            seen[name] += 1
            name = f"{name}_{seen[name]}"
        else:
            seen[name] = 0
        headers.append(name)
    return headers


def cell_value(value: object) -> CellValue:
    """Unwrap a decoded cell to plain ``str``/``int``/``float``/``None``."""
    if value is None:
        return None
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, str):
        value = value.strip()
        return value or None
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, datetime):
        if pd.isna(value):
            return None
        if value.time() == time(0, 0):
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    if isinstance(value, (date, time)):
        return value.isoformat()
    if isinstance(value, float):
        if np.isnan(value):
            return None
        return int(value) if value.is_integer() else value
    if isinstance(value, int):
        return value
    if pd.isna(value):
        return None
    return str(value)
