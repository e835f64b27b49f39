"""
Bank statement extraction and categorization engine.

Turns CSV, Excel and PDF statements into normalized, categorized
transactions and reports totals over them.
"""
import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from categorizer import MerchantDictionary, TransactionCategorizer
from config import DEFAULT_CONFIG, EngineConfig
from errors import FormatError, StatementError
from exporter import export_to_csv_bytes
from extractor import TransactionExtractor
from file_loader import FileLoader
from ocr_processor import OCRProcessor
from preprocess import normalize_date
from repository import InMemoryTransactionRepository, TransactionRepository
from schema import Transaction, UploadResult
from summary import compute_totals, extract_summary, summarize_by_category

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(verbose: bool = False, log_level: str = 'INFO', log_file: Optional[str] = None) -> None:
    """Configure console (and optional file) logging for the command line."""
    level = logging.DEBUG if verbose else getattr(logging, log_level.upper(), logging.INFO)
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers)


class BankStatementProcessor:
    """Main processor for bank statements."""

    def __init__(self,
                 config: Optional[EngineConfig] = None,
                 ocr_engine=None,
                 repository: Optional[TransactionRepository] = None,
                 dictionary: Optional[MerchantDictionary] = None):
        self.config = config or DEFAULT_CONFIG
        self.file_loader = FileLoader(
            OCRProcessor(engine=ocr_engine, dpi=self.config.ocr_dpi, language=self.config.ocr_language)
        )
        self.extractor = TransactionExtractor(self.config.max_likely_amount)
        if dictionary is None:
            dictionary = MerchantDictionary.load(self.config.dictionary_sources)
        self.categorizer = TransactionCategorizer(dictionary)
        self.repository = repository if repository is not None else InMemoryTransactionRepository()

    def parse_file(self, filename: str, data: bytes) -> List[Transaction]:
        """
        Parse a statement upload end-to-end.

        Args:
            filename: Original upload name; its extension selects the parser
            data: Raw file bytes

        Returns:
            Categorized transactions in source order

        Raises:
            UnsupportedFormat: the extension has no parser
            FormatError: the file could not be decoded
        """
        logger.info(f"Starting processing of file: {filename}")

        try:
            file_type, content = self.file_loader.load(filename, data)
            transactions = [
                self.categorizer.build_transaction(record, source_file=filename)
                for record in self.extractor.extract(file_type, content)
            ]
        except StatementError as e:
            logger.error(f"Error processing file {filename}: {e}")
            raise

        logger.info(f"Successfully processed {len(transactions)} transactions from {filename}")
        return transactions

    def parse_and_save(self, filename: str, data: bytes) -> List[Transaction]:
        """Parse an upload and persist the whole batch; nothing is saved on failure."""
        transactions = self.parse_file(filename, data)
        if transactions:
            self.repository.save_all(transactions)
        return transactions

    def upload(self, filename: str, data: bytes) -> UploadResult:
        """Parse, persist and summarize an upload, reporting failures as an error message."""
        try:
            transactions = self.parse_and_save(filename, data)
        except Exception as e:
            logger.error(f"Upload of {filename} failed: {e}")
            return UploadResult(error=str(e))

        return UploadResult(
            transactions=transactions,
            summary=summarize_by_category(transactions),
            total_count=len(transactions),
        )

    def export(self, transactions: Sequence[Transaction]) -> Tuple[str, bytes]:
        """CSV export as (attachment filename, bytes)."""
        payload = export_to_csv_bytes(transactions, self.config.export_encoding)
        return self.config.export_filename, payload

    def extract_summary(self, data: bytes) -> dict:
        """Printed totals and balances from a PDF statement's embedded text."""
        try:
            text = self.file_loader.extract_pdf_text(data)
        except Exception as e:
            raise FormatError(f"PDF summary extraction error: {e}") from e
        return extract_summary(text, self.config.max_likely_amount)

    def compute_totals(self, transactions: Sequence[Transaction],
                       start: Optional[date] = None, end: Optional[date] = None) -> dict:
        return compute_totals(transactions, start, end)

    def summarize_by_category(self, transactions: Sequence[Transaction]) -> dict:
        return summarize_by_category(transactions)

    def list_all(self) -> List[Transaction]:
        return self.repository.list_all()


def _parse_cli_date(value: str) -> date:
    parsed = normalize_date(value)
    if parsed is None:
        raise argparse.ArgumentTypeError(f"Unrecognized date: {value}")
    return parsed


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(description='Extract and categorize transactions from bank statements')
    parser.add_argument('file_path', help='Path to bank statement file (.csv, .xlsx, .xls, .pdf)')
    parser.add_argument('-o', '--output', help='Output file path')
    parser.add_argument('--csv', action='store_true', help='Write CSV instead of JSON')
    parser.add_argument('--summary', action='store_true', help='Also report totals printed on a PDF statement')
    parser.add_argument('--from', dest='start', type=_parse_cli_date, help='Inclusive start date for totals')
    parser.add_argument('--to', dest='end', type=_parse_cli_date, help='Inclusive end date for totals')
    parser.add_argument('--categories', help='Merchant dictionary (keyword,category) to use')
    parser.add_argument('--log-file', help='Also write logs to this file')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')

    args = parser.parse_args(argv)

    config = EngineConfig.from_env()
    setup_logging(args.verbose, config.log_level, args.log_file)
    if args.categories:
        config = config.model_copy(update={'dictionary_sources': [Path(args.categories)]})

    path = Path(args.file_path)
    if not path.exists():
        print(f"Error: File not found - {args.file_path}")
        return 1

    processor = BankStatementProcessor(config=config)
    data = path.read_bytes()

    try:
        transactions = processor.parse_file(path.name, data)
        printed = processor.extract_summary(data) if args.summary and path.suffix.lower() == '.pdf' else {}
    except StatementError as e:
        logger.error(f"Processing failed: {e}")
        print(f"Error: {e}")
        return 1

    if args.csv:
        payload = processor.export(transactions)[1]
    else:
        output_data = [txn.model_dump(mode='json', by_alias=True) for txn in transactions]
        payload = json.dumps(output_data, indent=2, ensure_ascii=False).encode('utf-8')

    if args.output:
        Path(args.output).write_bytes(payload)
        print(f"Results written to: {args.output}")
    else:
        sys.stdout.write(payload.decode('utf-8'))
        sys.stdout.write('\n')

    totals = processor.compute_totals(transactions, args.start, args.end)
    print(f"\nSummary:")
    print(f"- Total transactions processed: {len(transactions)}")
    print(f"- Source file: {path.name}")
    print(f"- Total debit: {totals['total_debit']}")
    print(f"- Total credit: {totals['total_credit']}")
    print(f"- Net: {totals['net']}")

    if transactions:
        print(f"\nCategory Breakdown:")
        for category, amount in processor.summarize_by_category(transactions).items():
            print(f"- {category}: {amount}")

    if printed:
        print(f"\nStatement Totals:")
        for key, value in printed.items():
            print(f"- {key}: {value}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
