"""
Statement CSV Parser Module

Parses the fixed Date/Amount/Description bank statement layout into
validated transactions plus a per-row error list.
"""

import csv
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from io import StringIO
from pathlib import Path

from .config import ImportSettings

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ["Date", "Amount", "Description"]

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

CENTS = Decimal("0.01")


class CSVStructureError(ValueError):
    """Raised when the file as a whole cannot be imported."""

    def __init__(self, message: str, missing_columns: list[str] | None = None):
        super().__init__(message)
        self.missing_columns = missing_columns or []


@dataclass(frozen=True)
class RawRow:
    """A data row reduced to the three columns the importer reads."""

    date: str | None
    amount: str | None
    description: str | None

    @classmethod
    def from_cells(cls, cells: list[str], columns: dict[str, int]) -> "RawRow":
        def cell(name: str) -> str | None:
            index = columns[name]
            return cells[index] if index < len(cells) else None

        return cls(
            date=cell("Date"),
            amount=cell("Amount"),
            description=cell("Description"),
        )


@dataclass(frozen=True)
class ParsedTransaction:
    """A validated transaction from a statement row."""

    date: date
    amount: Decimal
    description: str
    row_number: int

    @property
    def date_key(self) -> str:
        """ISO YYYY-MM-DD form of the date."""
        return self.date.isoformat()

    def to_dict(self) -> dict:
        return {
            "date": self.date_key,
            "amount": float(self.amount),
            "description": self.description,
            "row_number": self.row_number,
        }


@dataclass(frozen=True)
class RowError:
    """Validation failure for a single statement row."""

    row_number: int
    message: str

    def to_dict(self) -> dict:
        return {"row_number": self.row_number, "message": self.message}


@dataclass
class ParseSummary:
    total: int = 0
    success: int = 0
    failed: int = 0


@dataclass
class ParseResult:
    """Result of parsing a statement."""

    transactions: list[ParsedTransaction] = field(default_factory=list)
    errors: list[RowError] = field(default_factory=list)
    summary: ParseSummary = field(default_factory=ParseSummary)

    def to_dict(self) -> dict:
        return {
            "transactions": [t.to_dict() for t in self.transactions],
            "errors": [e.to_dict() for e in self.errors],
            "summary": {
                "total": self.summary.total,
                "success": self.summary.success,
                "failed": self.summary.failed,
            },
        }


@dataclass
class FileValidation:
    """Result of the upload admission check."""

    valid: bool
    error: str | None = None


class StatementCSVParser:
    """Parser for the Date, Amount, Description statement layout."""

    def __init__(self, settings: ImportSettings | None = None, delimiter: str = ","):
        """Initialize the parser.

        Args:
            settings: Import limits; defaults are used when omitted
            delimiter: CSV delimiter
        """
        self.settings = settings or ImportSettings()
        self.delimiter = delimiter

    def parse_file(self, file_path: Path | str) -> ParseResult:
        """Parse a CSV file from disk.

        Args:
            file_path: Path to the CSV file

        Returns:
            ParseResult object
        """
        file_path = Path(file_path)
        return self.parse_content(decode_csv_bytes(file_path.read_bytes()))

    def parse_content(self, content: str) -> ParseResult:
        """Parse CSV content string.

        Args:
            content: CSV content as string

        Returns:
            ParseResult object

        Raises:
            CSVStructureError: If a required column is missing
        """
        result = ParseResult()
        content = self._preprocess_content(content)

        # Any single field of an admitted file must be readable
        csv.field_size_limit(max(csv.field_size_limit(), len(content)))

        rows = (
            cells
            for cells in csv.reader(StringIO(content), delimiter=self.delimiter)
            if not self._is_blank(cells)
        )

        headers = [h.strip() for h in next(rows, [])]
        columns = self._map_columns(headers)

        row_number = 1
        for cells in rows:
            row_number += 1
            raw = RawRow.from_cells(cells, columns)
            try:
                result.transactions.append(self._parse_row(raw, row_number))
            except ValueError as e:
                result.errors.append(RowError(row_number=row_number, message=str(e)))

        result.summary = ParseSummary(
            total=len(result.transactions) + len(result.errors),
            success=len(result.transactions),
            failed=len(result.errors),
        )

        logger.info(
            f"Parsed statement: {result.summary.success} valid, "
            f"{result.summary.failed} invalid of {result.summary.total} rows"
        )

        return result

    def _preprocess_content(self, content: str) -> str:
        """Strip BOM and normalize line endings."""
        if content.startswith('\ufeff'):
            content = content[1:]

        return content.replace('\r\n', '\n').replace('\r', '\n')

    @staticmethod
    def _is_blank(cells: list[str]) -> bool:
        """True for empty lines only; a row of empty cells is still a row."""
        return not cells or (len(cells) == 1 and not cells[0].strip())

    def _map_columns(self, headers: list[str]) -> dict[str, int]:
        """Locate the required columns in the header row.

        Args:
            headers: Trimmed header names

        Returns:
            Dictionary mapping required column name to its index

        Raises:
            CSVStructureError: If any required column is absent
        """
        missing = [col for col in REQUIRED_COLUMNS if col not in headers]
        if missing:
            raise CSVStructureError(
                f"CSV must have {', '.join(REQUIRED_COLUMNS)} columns. "
                f"Missing: {', '.join(missing)}",
                missing_columns=missing,
            )

        return {col: headers.index(col) for col in REQUIRED_COLUMNS}

    def _parse_row(self, raw: RawRow, row_number: int) -> ParsedTransaction:
        """Validate a raw row. Checks run in order and the first failure wins.

        Raises:
            ValueError: With the user-facing message for the failed check
        """
        txn_date = self._parse_date(raw.date)
        amount = self._parse_amount(raw.amount)

        description = (raw.description or "").strip()
        if not description:
            raise ValueError("Missing description")
        if len(description) > self.settings.max_description_length:
            raise ValueError(
                f"Description must be {self.settings.max_description_length} characters or less"
            )

        return ParsedTransaction(
            date=txn_date,
            amount=amount,
            description=description,
            row_number=row_number,
        )

    def _parse_date(self, date_str: str | None) -> date:
        date_str = (date_str or "").strip()
        if not DATE_PATTERN.match(date_str):
            raise ValueError("Invalid date format. Expected YYYY-MM-DD")

        try:
            return datetime.strptime(date_str, "%Y-%m-%d").date()
        except ValueError:
            raise ValueError("Invalid date value")

    def _parse_amount(self, amount_str: str | None) -> Decimal:
        """Parse an amount string to a positive Decimal with cent precision.

        The sign is not imported; refunds and charges both become magnitudes.
        """
        amount_str = (amount_str or "").strip()
        if not amount_str:
            raise ValueError("Missing amount")

        cleaned = re.sub(r'[\s$,]', '', amount_str)

        try:
            amount = abs(Decimal(cleaned))
        except InvalidOperation:
            raise ValueError("Invalid amount")

        if not amount.is_finite() or amount == 0:
            raise ValueError("Invalid amount")
        if amount > self.settings.max_amount:
            raise ValueError("Amount exceeds maximum allowed value")

        amount = amount.quantize(CENTS, rounding=ROUND_HALF_UP)
        if amount == 0:
            raise ValueError("Invalid amount")

        return amount


def decode_csv_bytes(data: bytes) -> str:
    """Decode uploaded bytes as UTF-8, tolerating a BOM.

    Raises:
        CSVStructureError: If the bytes are not valid UTF-8
    """
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise CSVStructureError("CSV file must be UTF-8 encoded")


def validate_csv_file(
    filename: str,
    size: int,
    settings: ImportSettings | None = None
) -> FileValidation:
    """Check an upload before parsing.

    Args:
        filename: Uploaded file name
        size: File size in bytes
        settings: Import limits

    Returns:
        FileValidation with the first failing rule, if any
    """
    settings = settings or ImportSettings()

    if not (filename or "").lower().endswith(".csv"):
        return FileValidation(valid=False, error="Please upload a CSV file")

    if size > settings.max_file_bytes:
        return FileValidation(
            valid=False,
            error="File too large. Please import transactions in smaller batches"
        )

    if size <= 0:
        return FileValidation(valid=False, error="CSV file is empty")

    return FileValidation(valid=True)


def parse_csv(content: str, settings: ImportSettings | None = None) -> ParseResult:
    """Convenience function to parse statement content.

    Args:
        content: CSV content string
        settings: Import limits

    Returns:
        ParseResult

    Raises:
        CSVStructureError: If a required column is missing
    """
    return StatementCSVParser(settings).parse_content(content)
