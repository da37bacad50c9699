from __future__ import annotations

import csv
import io
import logging

from trade_journal.config.settings import DEFAULT_SAMPLE_LINES
from trade_journal.ingest.errors import EmptyFileError
from trade_journal.ingest.models import RawTable

logger = logging.getLogger(__name__)

# Priority order; on equal scores the earlier delimiter wins.
CANDIDATE_DELIMITERS = (",", ";", "\t", "|")

BOM = "\ufeff"


def decode_content(content: str | bytes) -> str:
    if isinstance(content, str):
        return content
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        logger.warning("CSV content is not valid UTF-8; decoding as cp1252")
        return content.decode("cp1252", errors="replace")


def _non_blank_lines(text: str) -> list[str]:
    return [line for line in text.splitlines() if line.strip()]


def _cell_count(line: str, delimiter: str) -> int:
    return len(next(csv.reader([line], delimiter=delimiter), []))


def detect_delimiter(text: str, sample_lines: int = DEFAULT_SAMPLE_LINES) -> str:
    sample = _non_blank_lines(text.lstrip(BOM))[: max(sample_lines, 1)]
    if not sample:
        return CANDIDATE_DELIMITERS[0]

    best_delimiter = CANDIDATE_DELIMITERS[0]
    best_score = float("-inf")
    for delimiter in CANDIDATE_DELIMITERS:
        counts = [_cell_count(line, delimiter) for line in sample]
        average = sum(counts) / len(counts)
        if average > best_score:
            best_score = average
            best_delimiter = delimiter
    return best_delimiter


def sanitize_header(header: str) -> str:
    return header.replace(BOM, "").strip()


def tokenize(content: str | bytes, *, sample_lines: int | None = None) -> RawTable:
    text = decode_content(content).lstrip(BOM)
    if not _non_blank_lines(text):
        raise EmptyFileError("CSV file is empty")

    delimiter = detect_delimiter(text, sample_lines or DEFAULT_SAMPLE_LINES)
    parsed: list[list[str]] = []
    for row in csv.reader(io.StringIO(text, newline=""), delimiter=delimiter):
        cells = [cell.strip() for cell in row]
        if not any(cells):
            continue
        parsed.append(cells)
    if not parsed:
        raise EmptyFileError("CSV file is empty")

    headers = tuple(sanitize_header(cell) for cell in parsed[0])
    width = len(headers)
    rows = tuple(
        tuple((cells + [""] * width)[:width]) for cells in parsed[1:]
    )
    logger.debug(
        "Tokenized %d data rows with %d columns (delimiter=%r)", len(rows), width, delimiter
    )
    return RawTable(headers=headers, rows=rows, delimiter=delimiter)
