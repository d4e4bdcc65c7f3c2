"""Tests for the import/export CSV format."""

from catalog_service.catalog.csv_format import (
    EXPORT_COLUMNS,
    format_price,
    parse_bulk_csv,
    write_products_csv,
)


class TestParseBulkCSV:
    """Tests for parse_bulk_csv."""

    def test_basic_rows(self) -> None:
        """Rows become records with their line numbers."""
        parsed = parse_bulk_csv("name,price,sku\nLamp,5,L-1\nChair,7,")

        assert parsed.errors == []
        assert [(r.line, r.name, r.price, r.sku) for r in parsed.records] == [
            (2, "Lamp", "5", "L-1"),
            (3, "Chair", "7", None),
        ]

    def test_needs_header_and_data(self) -> None:
        """A header alone, or nothing at all, is rejected."""
        message = "File must have a header row and at least one data row."

        assert parse_bulk_csv("").errors == [message]
        assert parse_bulk_csv("name,price\n").errors == [message]

    def test_missing_required_column(self) -> None:
        """Both name and price must be in the header."""
        parsed = parse_bulk_csv("name,sku\nLamp,L-1")

        assert parsed.records == []
        assert parsed.errors == ["Missing required column: price"]

    def test_header_is_case_insensitive_with_aliases(self) -> None:
        """Headers are normalized and short aliases accepted."""
        parsed = parse_bulk_csv(" Name ,PRICE,Stock,Category,Color\nLamp,5,4,Books,red")

        record = parsed.records[0]
        assert record.stock_quantity == "4"
        assert record.category_name == "Books"
        assert record.category_id is None

    def test_column_count_mismatch(self) -> None:
        """Rows with the wrong number of cells are reported and skipped."""
        parsed = parse_bulk_csv("name,price\nLamp,5,extra\nChair,7")

        assert parsed.errors == ["Row 2: column count mismatch (expected 2, got 3)"]
        assert [r.name for r in parsed.records] == ["Chair"]

    def test_missing_name_and_price(self) -> None:
        """Blank name or price cells are errors."""
        parsed = parse_bulk_csv("name,price\n ,5\nLamp,")

        assert parsed.errors == ["Row 2: missing name", "Row 3: missing price"]
        assert parsed.records == []

    def test_quoted_fields(self) -> None:
        """Quoted cells may hold commas and doubled quotes."""
        parsed = parse_bulk_csv('name,price,description\n"Lamp, desk",5,"The ""bright"" one"')

        record = parsed.records[0]
        assert record.name == "Lamp, desk"
        assert record.description == 'The "bright" one'

    def test_blank_lines_and_multiline_cells(self) -> None:
        """Line numbers follow the file, across blank lines and embedded newlines."""
        text = 'name,price,description\n\nLamp,5,"two\nlines"\n\nChair,7,plain'

        parsed = parse_bulk_csv(text)

        assert parsed.errors == []
        assert [(r.line, r.name) for r in parsed.records] == [(3, "Lamp"), (6, "Chair")]
        assert parsed.records[0].description == "two\nlines"


class TestWriteProductsCSV:
    """Tests for write_products_csv and format_price."""

    def test_header_only(self) -> None:
        """No rows still yields the header, without trailing newline."""
        assert write_products_csv([]) == ",".join(EXPORT_COLUMNS)

    def test_header_only_output_does_not_parse(self) -> None:
        """A header-only export has no data rows to import."""
        parsed = parse_bulk_csv(write_products_csv([]))

        assert parsed.records == []
        assert parsed.errors == ["File must have a header row and at least one data row."]

    def test_quotes_special_fields(self) -> None:
        """Commas, quotes and newlines are quoted; None is empty."""
        text = write_products_csv(
            [
                {
                    "sku": None,
                    "name": 'Lamp "XL"',
                    "description": "desk, floor",
                    "price": 12.0,
                    "category_name": "Home",
                    "stock_quantity": -1,
                }
            ]
        )

        assert text.splitlines()[1] == ',"Lamp ""XL""","desk, floor",12,Home,-1'

    def test_format_price(self) -> None:
        """Whole prices drop the decimal part."""
        assert format_price(10.0) == "10"
        assert format_price(2.5) == "2.5"
        assert format_price(0) == "0"
        assert format_price(None) == ""

    def test_export_parses_back(self) -> None:
        """Exported text is a valid import file."""
        rows = [
            {
                "sku": "L-1",
                "name": "Lamp, desk",
                "description": 'Says "hi"\nand more',
                "price": 9.99,
                "category_name": "Home",
                "stock_quantity": 3,
            },
            {
                "sku": None,
                "name": "Chair",
                "description": None,
                "price": 20,
                "category_name": "Home",
                "stock_quantity": -1,
            },
        ]

        parsed = parse_bulk_csv(write_products_csv(rows))

        assert parsed.errors == []
        first, second = parsed.records
        assert (first.name, first.description, first.price) == ("Lamp, desk", 'Says "hi"\nand more', "9.99")
        assert (second.sku, second.price, second.stock_quantity) == (None, "20", "-1")
