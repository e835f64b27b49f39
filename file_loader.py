import csv
import io
import logging
from datetime import date, datetime
from pathlib import PurePath
from typing import List, NamedTuple, Optional, Tuple, Union

import openpyxl
import pandas as pd
import pdfplumber

from errors import FormatError, UnsupportedFormat
from ocr_processor import OCRProcessor

logger = logging.getLogger(__name__)

EXTENSION_FORMATS = {
    'csv': 'csv',
    'xlsx': 'excel',
    'xls': 'excel',
    'pdf': 'pdf',
}


class SheetCell(NamedTuple):
    """A populated spreadsheet cell with the type information parsers need."""
    column: int
    kind: str  # 'string', 'numeric', 'date' or 'formula'
    value: object


CsvRow = List[Optional[str]]
SheetRow = List[SheetCell]


def file_extension(filename: str) -> str:
    suffix = PurePath(filename or '').suffix
    return suffix[1:].lower() if suffix else ''


def detect_format(filename: str) -> str:
    """Map a file name to 'csv', 'excel' or 'pdf' by its extension."""
    ext = file_extension(filename)
    if ext not in EXTENSION_FORMATS:
        raise UnsupportedFormat(ext)
    return EXTENSION_FORMATS[ext]


class FileLoader:
    """Decodes uploaded bytes into rows, cells or document text."""

    CSV_ENCODINGS = ['utf-8-sig', 'cp1252', 'latin1']

    def __init__(self, ocr_processor: Optional[OCRProcessor] = None):
        self.logger = logging.getLogger(self.__class__.__name__)
        self.ocr_processor = ocr_processor

    def load(self, filename: str, data: bytes) -> Tuple[str, Union[List[CsvRow], List[SheetRow], str]]:
        """
        Load an upload based on its extension and return (file_type, content).

        Args:
            filename: Original upload name, used only for its extension
            data: Raw file bytes

        Returns:
            Tuple of (file_type, content) where content is a list of CSV rows,
            a list of spreadsheet rows, or the document text
        """
        file_type = detect_format(filename)
        self.logger.info(f"Loading {file_type} file: {filename}")

        if file_type == 'csv':
            return file_type, self.load_csv(data)
        if file_type == 'excel':
            return file_type, self.load_excel(data, file_extension(filename))
        return file_type, self.load_pdf(data)

    def load_csv(self, data: bytes) -> List[CsvRow]:
        """
        Read delimited text as rows of strings, header row included.

        Rows may be wider or narrower than the header; the frame is sized to
        the widest row so trailing-comma exports load like any other.
        """
        for encoding in self.CSV_ENCODINGS:
            try:
                text = data.decode(encoding)
            except UnicodeDecodeError:
                continue
            self.logger.info(f"Decoded CSV with {encoding} encoding")
            break
        else:
            raise FormatError(f"CSV parse error: could not decode with any of {self.CSV_ENCODINGS}")

        try:
            width = max((len(fields) for fields in csv.reader(io.StringIO(text))), default=0)
            if width == 0:
                return []
            df = pd.read_csv(
                io.StringIO(text),
                header=None,
                names=range(width),
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=True,
            )
        except pd.errors.EmptyDataError:
            return []
        except (csv.Error, pd.errors.ParserError, ValueError) as e:
            raise FormatError(f"CSV parse error: {e}") from e

        rows = []
        for values in df.itertuples(index=False, name=None):
            row = [None if pd.isna(v) else v for v in values]
            # Cells pandas padded onto short rows are not part of the row
            while row and row[-1] is None:
                row.pop()
            if row:
                rows.append(row)
        return rows

    def load_excel(self, data: bytes, extension: str = 'xlsx') -> List[SheetRow]:
        """Read the first sheet as rows of populated cells, header row included."""
        try:
            if extension == 'xls':
                return self._load_xls(data)
            return self._load_xlsx(data)
        except Exception as e:
            raise FormatError(f"Excel parse error: {e}") from e

    def _load_xlsx(self, data: bytes) -> List[SheetRow]:
        # Formula cells hold their source in one workbook and the cached result in the other
        formulas = openpyxl.load_workbook(io.BytesIO(data), data_only=False).worksheets[0]
        values = openpyxl.load_workbook(io.BytesIO(data), data_only=True).worksheets[0]

        rows = []
        for formula_row, value_row in zip(formulas.iter_rows(), values.iter_rows()):
            cells = []
            for cell, cached in zip(formula_row, value_row):
                if cell.value is None:
                    continue
                if cell.data_type == 'f':
                    cells.append(SheetCell(cell.column - 1, 'formula', cached.value))
                elif isinstance(cell.value, (datetime, date)):
                    cells.append(SheetCell(cell.column - 1, 'date', cell.value))
                elif isinstance(cell.value, (int, float)) and not isinstance(cell.value, bool):
                    cells.append(SheetCell(cell.column - 1, 'numeric', cell.value))
                elif isinstance(cell.value, str):
                    cells.append(SheetCell(cell.column - 1, 'string', cell.value))
            if cells:
                rows.append(cells)

        self.logger.info(f"Read {len(rows)} rows from sheet: {formulas.title}")
        return rows

    def _load_xls(self, data: bytes) -> List[SheetRow]:
        df = pd.read_excel(io.BytesIO(data), sheet_name=0, header=None, engine='xlrd')

        rows = []
        for values in df.itertuples(index=False, name=None):
            cells = []
            for column, value in enumerate(values):
                if isinstance(value, bool) or pd.isna(value):
                    continue
                if isinstance(value, (datetime, date)):
                    cells.append(SheetCell(column, 'date', value))
                elif isinstance(value, (int, float)):
                    cells.append(SheetCell(column, 'numeric', value))
                elif isinstance(value, str):
                    cells.append(SheetCell(column, 'string', value))
            if cells:
                rows.append(cells)

        self.logger.info(f"Read {len(rows)} rows from legacy sheet")
        return rows

    def load_pdf(self, data: bytes) -> str:
        """Extract document text, falling back to OCR for image-only pages."""
        try:
            text = self.extract_pdf_text(data)
            if not text:
                self.logger.warning("No text extracted from PDF - falling back to OCR")
                text = self._ocr_text(data)
        except Exception as e:
            raise FormatError(f"PDF parse/OCR error: {e}") from e
        return text

    def extract_pdf_text(self, data: bytes) -> str:
        """Embedded text of every page, non-breaking spaces replaced."""
        pages_text = []
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            for i, page in enumerate(pdf.pages):
                text = page.extract_text()
                if text and text.strip():
                    pages_text.append(text)
                    self.logger.debug(f"Extracted text from page {i + 1}")
        return '\n'.join(pages_text).replace('\u00a0', ' ').strip()

    def _ocr_text(self, data: bytes) -> str:
        if self.ocr_processor is None:
            self.ocr_processor = OCRProcessor()
        pages = self.ocr_processor.process_scanned_pdf(data)
        return '\n'.join(pages).replace('\u00a0', ' ').strip()
