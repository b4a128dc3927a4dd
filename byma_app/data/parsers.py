"""
CSV parsing for broker execution exports.

Reads a CSV file or text into trimmed row dictionaries, sniffing the
delimiter among the configured candidates and enforcing the row limits.
Malformed lines are reported in the parse metadata rather than raised.
"""

import csv
import io
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

from ..config.defaults import CsvParams
from ..errors import MissingDataError
from ..logging import get_pipeline_logger

logger = get_pipeline_logger(__name__)


@dataclass(frozen=True)
class ParseIssue:
    """A problem the reader found on one line."""
    row: int
    code: str
    message: str


@dataclass(frozen=True)
class ParseMeta:
    """Row counts and limit flags for one parsed file."""
    row_count: int
    exceeded_max_rows: bool = False
    warning_threshold_exceeded: bool = False
    errors: list[ParseIssue] = field(default_factory=list)
    delimiter: str = ","


@dataclass(frozen=True)
class ParseResult:
    rows: list[dict[str, Any]]
    meta: ParseMeta


def sniff_delimiter(sample: str, candidates: str) -> str:
    """Pick the delimiter among the candidates, defaulting to the first one."""
    try:
        return csv.Sniffer().sniff(sample, delimiters=candidates).delimiter
    except csv.Error:
        header = sample.splitlines()[0] if sample else ""
        counts = {d: header.count(d) for d in candidates}
        best = max(counts, key=counts.get) if counts else ","
        return best if counts.get(best) else candidates[0]


def _sanitize_row(row: dict[Optional[str], Any]) -> dict[str, Any]:
    sanitized = {}
    for key, value in row.items():
        if key is None:
            continue
        sanitized[key.strip()] = value.strip() if isinstance(value, str) else value
    return sanitized


def _is_empty_row(row: dict[str, Any]) -> bool:
    return all(value is None or value == "" for value in row.values())


def parse_operations_csv(text: str, params: Optional[CsvParams] = None) -> ParseResult:
    """
    Parse CSV text into row dictionaries.

    Args:
        text: CSV content with a header line
        params: Limits and delimiter candidates

    Returns:
        ParseResult with trimmed, non-empty rows and parse metadata
    """
    params = params or CsvParams()
    text = text.lstrip("\ufeff")
    delimiter = sniff_delimiter(text[:4096], params.delimiters)

    reader = csv.DictReader(io.StringIO(text), delimiter=delimiter)
    if reader.fieldnames:
        reader.fieldnames = [name.strip() for name in reader.fieldnames]

    rows: list[dict[str, Any]] = []
    errors: list[ParseIssue] = []
    exceeded_max_rows = False
    warning_threshold_exceeded = False

    try:
        for raw in reader:
            line = reader.line_num
            if None in raw:
                errors.append(ParseIssue(line, "TooManyFields",
                                         "Row has more fields than the header"))
            elif any(value is None for value in raw.values()):
                errors.append(ParseIssue(line, "TooFewFields",
                                         "Row has fewer fields than the header"))

            row = _sanitize_row(raw)
            if _is_empty_row(row):
                continue
            rows.append(row)

            if len(rows) == params.large_file_warning_threshold:
                warning_threshold_exceeded = True
            if len(rows) >= params.max_rows:
                exceeded_max_rows = True
                break
    except csv.Error as exc:
        errors.append(ParseIssue(reader.line_num, "MalformedCsv", str(exc)))

    if errors:
        logger.warning("CSV parse issues", count=len(errors), first=errors[0].message)
    if exceeded_max_rows:
        logger.warning("CSV row limit reached, remaining rows ignored", max_rows=params.max_rows)

    return ParseResult(
        rows=rows,
        meta=ParseMeta(
            row_count=len(rows),
            exceeded_max_rows=exceeded_max_rows,
            warning_threshold_exceeded=warning_threshold_exceeded,
            errors=errors,
            delimiter=delimiter,
        ),
    )


def read_operations_csv(path: Union[str, Path], params: Optional[CsvParams] = None) -> ParseResult:
    """
    Read and parse a CSV file.

    Raises:
        MissingDataError: If the file does not exist
    """
    path = Path(path)
    if not path.exists():
        raise MissingDataError(f"CSV file not found: {path}", data_type="csv",
                               context={"path": str(path)})
    with open(path, encoding="utf-8-sig", newline="") as f:
        return parse_operations_csv(f.read(), params)
