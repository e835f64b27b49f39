from datetime import datetime

import pytest

import ocr_processor
from errors import FormatError, StatementError, UnsupportedFormat
from file_loader import FileLoader, SheetCell, detect_format, file_extension
from ocr_processor import OCRProcessor


class TestFormatDetection:
    def test_known_extensions(self):
        assert detect_format("statement.csv") == "csv"
        assert detect_format("STATEMENT.XLSX") == "excel"
        assert detect_format("old.xls") == "excel"
        assert detect_format("scan.pdf") == "pdf"

    def test_unsupported_extension(self):
        with pytest.raises(UnsupportedFormat) as exc_info:
            detect_format("statement.docx")
        assert exc_info.value.extension == "docx"
        assert str(exc_info.value) == "Unsupported file type: docx"
        assert isinstance(exc_info.value, StatementError)

    def test_missing_extension(self):
        assert file_extension("statement") == ""
        with pytest.raises(UnsupportedFormat):
            detect_format("statement")


class TestCsvLoading:
    """Test suite for delimited-text decoding"""

    def test_rows(self, statement_csv_bytes):
        rows = FileLoader().load_csv(statement_csv_bytes)
        assert rows[0] == ["Txn Date", "Narration", "Withdrawal Amt", "Type", "Category"]
        assert rows[1][2] == "1,234.50"
        assert len(rows) == 4

    def test_quoted_fields(self):
        data = b'Date,Description,Amount\n01/11/2025,"Paid to ""Amazon"", Pay",450.00\n'
        rows = FileLoader().load_csv(data)
        assert rows[1] == ["01/11/2025", 'Paid to "Amazon", Pay', "450.00"]

    def test_byte_order_mark(self):
        rows = FileLoader().load_csv(b"\xef\xbb\xbfDate,Amount\n01/11/2025,10\n")
        assert rows[0][0] == "Date"

    def test_blank_lines_skipped(self):
        rows = FileLoader().load_csv(b"Date,Amount\n\n01/11/2025,10\n\n")
        assert rows == [["Date", "Amount"], ["01/11/2025", "10"]]

    def test_empty_file(self):
        assert FileLoader().load_csv(b"") == []

    def test_trailing_comma_rows(self):
        """Data rows wider than the header still load"""
        data = b"Date,Description,Amount\n01/11/2025,Swiggy order,250.00,\n02/11/2025,Uber trip,99.00,\n"
        rows = FileLoader().load_csv(data)
        assert rows[0] == ["Date", "Description", "Amount"]
        assert rows[1][:3] == ["01/11/2025", "Swiggy order", "250.00"]
        assert rows[2][:3] == ["02/11/2025", "Uber trip", "99.00"]

    def test_ragged_rows(self):
        rows = FileLoader().load_csv(b"Date,Amount\n01/11/2025,10,20,30\n02/11/2025\n")
        assert rows == [["Date", "Amount"], ["01/11/2025", "10", "20", "30"], ["02/11/2025"]]

    def test_unterminated_quote(self):
        with pytest.raises(FormatError) as exc_info:
            FileLoader().load_csv(b'Date,Amount\n"01/11/2025,10\n')
        assert "CSV parse error" in str(exc_info.value)


class TestExcelLoading:
    """Test suite for spreadsheet decoding"""

    def test_typed_cells(self, make_xlsx):
        data = make_xlsx([
            ["Date", "Description", "Amount"],
            [datetime(2025, 1, 5), "Swiggy order", 250.5],
            [None, "Netflix", None],
        ])
        rows = FileLoader().load_excel(data)
        assert rows[0] == [SheetCell(0, "string", "Date"), SheetCell(1, "string", "Description"),
                           SheetCell(2, "string", "Amount")]
        assert rows[1][0].kind == "date"
        assert rows[1][2] == SheetCell(2, "numeric", 250.5)
        assert rows[2] == [SheetCell(1, "string", "Netflix")]

    def test_formula_cells(self, make_xlsx):
        data = make_xlsx([["Amount", "Double"], [10, "=A2*2"]])
        rows = FileLoader().load_excel(data)
        formula = rows[1][1]
        assert formula.kind == "formula"
        assert formula.column == 1

    def test_corrupt_workbook(self):
        with pytest.raises(FormatError) as exc_info:
            FileLoader().load_excel(b"definitely not a workbook")
        assert "Excel parse error" in str(exc_info.value)


class TestPdfLoading:
    """Test suite for PDF text extraction and the OCR fallback"""

    def test_embedded_text(self, fake_pdf):
        fake_pdf(["Debit INR 450.00\u00a0Paid to Amazon", "", "Page 2"])
        text = FileLoader().load_pdf(b"%PDF-1.4")
        assert text == "Debit INR 450.00 Paid to Amazon\nPage 2"

    def test_ocr_fallback(self, fake_pdf, fake_ocr, monkeypatch):
        fake_pdf(["", "   "])
        monkeypatch.setattr(ocr_processor, "render_pages", lambda data, dpi=200: iter(["p1", "p2", "p3"]))
        fake_ocr.pages = {
            "p1": "Debit INR 450.00 Paid to Amazon Pay",
            "p2": RuntimeError("tesseract crashed"),
            "p3": "39.00(Dr) ATM Withdrawal",
        }

        text = FileLoader(OCRProcessor(engine=fake_ocr)).load_pdf(b"%PDF-1.4")
        assert text == "Debit INR 450.00 Paid to Amazon Pay\n39.00(Dr) ATM Withdrawal"
        assert fake_ocr.seen == ["p1", "p2", "p3"]

    def test_unreadable_pdf(self, fake_ocr):
        with pytest.raises(FormatError) as exc_info:
            FileLoader(OCRProcessor(engine=fake_ocr)).load_pdf(b"this is not a pdf")
        assert "PDF parse/OCR error" in str(exc_info.value)
        assert exc_info.value.__cause__ is not None


class TestLoad:
    def test_dispatch(self, statement_csv_bytes):
        file_type, content = FileLoader().load("Statement.CSV", statement_csv_bytes)
        assert file_type == "csv"
        assert len(content) == 4

    def test_unsupported(self):
        with pytest.raises(UnsupportedFormat):
            FileLoader().load("notes.txt", b"hello")
