import io
from datetime import datetime

import openpyxl
import pytest

from categorizer import MerchantDictionary
from extract import BankStatementProcessor

sample_statement_csv = (
    "Txn Date,Narration,Withdrawal Amt,Type,Category\n"
    "01/11/2025,Paid to ZOMATO Bangalore,\"1,234.50\",DEBIT,Food & Drinks\n"
    "02/11/2025,Deepak Kumar,500,DR,\n"
    "03/11/2025,Salary credited ACME,\"45,000.00\",CREDIT,Income\n"
)


class FakeOCREngine:
    """Returns canned text per rendered page; pages mapped to an exception raise it."""

    def __init__(self, pages=None):
        self.pages = pages or {}
        self.seen = []

    def recognize(self, image):
        self.seen.append(image)
        result = self.pages.get(image, "")
        if isinstance(result, Exception):
            raise result
        return result


class FakePdfPage:
    def __init__(self, text):
        self.text = text

    def extract_text(self):
        return self.text


class FakePdf:
    def __init__(self, page_texts):
        self.pages = [FakePdfPage(text) for text in page_texts]

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


@pytest.fixture
def builtin_dictionary():
    """Merchant dictionary holding only the built-in rules"""
    return MerchantDictionary({})


@pytest.fixture
def fake_ocr():
    return FakeOCREngine()


@pytest.fixture
def processor(builtin_dictionary, fake_ocr):
    """Engine wired to built-in rules, an in-memory store and a fake OCR engine"""
    return BankStatementProcessor(dictionary=builtin_dictionary, ocr_engine=fake_ocr)


@pytest.fixture
def statement_csv_bytes():
    return sample_statement_csv.encode("utf-8")


@pytest.fixture
def fake_pdf(monkeypatch):
    """Replace pdfplumber.open so PDF uploads yield the given page texts"""
    import pdfplumber

    def _install(page_texts):
        monkeypatch.setattr(pdfplumber, "open", lambda fp: FakePdf(page_texts))

    return _install


@pytest.fixture
def make_xlsx():
    """Helper fixture to build an in-memory workbook from a list of rows"""
    def _make(rows):
        wb = openpyxl.Workbook()
        ws = wb.active
        ws.title = "Statement"
        for row in rows:
            ws.append(row)
        buffer = io.BytesIO()
        wb.save(buffer)
        return buffer.getvalue()

    return _make


@pytest.fixture
def statement_xlsx_bytes(make_xlsx):
    return make_xlsx([
        ["Date", "Description", "Amount", "Balance"],
        [datetime(2025, 1, 5), "Swiggy order 1182", 250.5, 10000],
        ["06/01/2025", "Netflix payment", "1,499.00", 8501],
        [datetime(2025, 1, 7), "Transfer", 1200, 7301],
    ])
