"""CSV format for bulk import and export.

Import files need a header row naming at least ``name`` and ``price``.
Optional columns: ``sku``, ``description``, ``stock_quantity`` (or
``stock``), and ``category_id`` or ``category_name`` (or ``category``).
Column names are matched case-insensitively, unknown columns are ignored
and blank lines are skipped. Every error names the 1-based line it came
from.
"""

import csv
import io
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

REQUIRED_COLUMNS = ("name", "price")

EXPORT_COLUMNS = ("sku", "name", "description", "price", "category_name", "stock_quantity")

# Accepted header spellings, first match wins
_COLUMN_ALIASES = {
    "stock_quantity": ("stock_quantity", "stock"),
    "category_name": ("category_name", "category"),
}


@dataclass(frozen=True)
class CSVRecord:
    """One data row of an import file, fields still as text.

    Attributes:
        line: 1-based line number where the row starts.
        name: Product name.
        price: Raw price text.
        sku: SKU, None when blank.
        description: Description, None when blank.
        stock_quantity: Raw stock text, None when blank.
        category_id: Raw category id text, None when blank.
        category_name: Category name, None when blank.
    """

    line: int
    name: str
    price: str
    sku: str | None = None
    description: str | None = None
    stock_quantity: str | None = None
    category_id: str | None = None
    category_name: str | None = None


@dataclass
class ParsedCSV:
    """Rows and line-numbered errors of an import file."""

    records: list[CSVRecord] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def _blank(cells: list[str]) -> bool:
    return not any(cell.strip() for cell in cells)


def _column_index(header: list[str]) -> dict[str, int]:
    index: dict[str, int] = {}
    for position, column in enumerate(header):
        index.setdefault(column, position)
    for canonical, aliases in _COLUMN_ALIASES.items():
        for alias in aliases:
            if alias in index:
                index[canonical] = index[alias]
                break
    return index


def parse_bulk_csv(text: str) -> ParsedCSV:
    """Parse import text into records.

    Structural problems (missing header or required column, wrong number
    of cells, empty name or price) are reported here. Values are
    validated against the catalog by the bulk pipeline.

    Args:
        text: Decoded CSV text.

    Returns:
        Parsed records and error messages.
    """
    reader = csv.reader(io.StringIO(text))
    rows: list[tuple[int, list[str]]] = []
    try:
        previous_line = 0
        for cells in reader:
            start_line = previous_line + 1
            previous_line = reader.line_num
            if not _blank(cells):
                rows.append((start_line, cells))
    except csv.Error as exc:
        return ParsedCSV(errors=[f"Row {reader.line_num}: {exc}"])

    if len(rows) < 2:
        return ParsedCSV(errors=["File must have a header row and at least one data row."])

    header = [column.strip().lower() for column in rows[0][1]]
    for column in REQUIRED_COLUMNS:
        if column not in header:
            return ParsedCSV(errors=[f"Missing required column: {column}"])

    index = _column_index(header)
    result = ParsedCSV()

    for line, cells in rows[1:]:
        if len(cells) != len(header):
            result.errors.append(
                f"Row {line}: column count mismatch "
                f"(expected {len(header)}, got {len(cells)})"
            )
            continue

        def value(column: str) -> str | None:
            position = index.get(column)
            if position is None:
                return None
            return cells[position].strip() or None

        name = value("name")
        if name is None:
            result.errors.append(f"Row {line}: missing name")
            continue
        price = value("price")
        if price is None:
            result.errors.append(f"Row {line}: missing price")
            continue

        result.records.append(
            CSVRecord(
                line=line,
                name=name,
                price=price,
                sku=value("sku"),
                description=value("description"),
                stock_quantity=value("stock_quantity"),
                category_id=value("category_id"),
                category_name=value("category_name"),
            )
        )

    return result


def format_price(price: Any) -> str:
    """Render a price without a trailing ``.0`` for whole amounts."""
    if price is None:
        return ""
    number = float(price)
    return str(int(number)) if number.is_integer() else str(number)


def write_products_csv(rows: Iterable[Mapping[str, Any]]) -> str:
    """Render product rows as export CSV.

    Fields containing a comma, a quote or a newline are quoted, with
    embedded quotes doubled.

    With no rows the result is the header alone. Such a file is not a
    valid import: ``parse_bulk_csv`` requires at least one data row.

    Args:
        rows: Mappings with the ``EXPORT_COLUMNS`` keys.

    Returns:
        CSV text, header first, newline separated, no trailing newline.
    """
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(EXPORT_COLUMNS)
    for row in rows:
        writer.writerow(
            [
                row.get("sku"),
                row.get("name"),
                row.get("description"),
                format_price(row.get("price")),
                row.get("category_name"),
                row.get("stock_quantity"),
            ]
        )
    return buf.getvalue().rstrip("\n")
