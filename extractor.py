import re
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Iterator, List, NamedTuple, Optional, Tuple

from file_loader import CsvRow, SheetRow
from preprocess import (
    MAX_LIKELY_AMOUNT,
    clean_amount,
    find_date_in_text,
    normalize_date,
    truncate,
)
from schema import DESCRIPTION_MAX_LENGTH, TransactionType

logger = logging.getLogger(__name__)

RawRecord = Dict[str, Any]

# Header substrings that bind a column to a role; a header may bind several roles
COLUMN_ROLES = {
    'date': ('date',),
    'description': ('desc', 'narration', 'description'),
    'amount': ('amount', 'amt'),
    'type': ('type',),
    'category': ('category',),
}

SKIP_BLOCK_MARKERS = ('page', 'transaction statement for')


class AmountPattern(NamedTuple):
    """One way a statement block can state its amount."""
    name: str
    regex: re.Pattern
    amount_group: int
    requires: Tuple[str, ...]  # block must contain one of these, when non-empty
    resolve_type: Callable[[re.Match, str], Optional[str]]


def _type_from_keyword(match: re.Match, lowered: str) -> Optional[str]:
    return match.group(1).upper()


def _type_from_context(match: re.Match, lowered: str) -> Optional[str]:
    return TransactionType.CREDIT.value if 'credit' in lowered else TransactionType.DEBIT.value


def _type_from_suffix(match: re.Match, lowered: str) -> Optional[str]:
    return TransactionType.DEBIT.value if match.group(2).lower() == 'dr' else TransactionType.CREDIT.value


# Evaluated in order; the first pattern that yields a usable amount wins
AMOUNT_PATTERNS = (
    AmountPattern(
        name='debit_credit',
        regex=re.compile(
            r'\b(debit|credit)\s*(inr)?\s*:?\s*([0-9]{1,3}(?:[.,][0-9]{2,})|[0-9]+(?:[.,][0-9]+)?)',
            re.IGNORECASE,
        ),
        amount_group=3,
        requires=(),
        resolve_type=_type_from_keyword,
    ),
    AmountPattern(
        name='inr_token',
        regex=re.compile(r'\bINR\s*([0-9.,]+)', re.IGNORECASE),
        amount_group=1,
        requires=('debit', 'debited', 'paid to', 'paid -', 'payment'),
        resolve_type=_type_from_context,
    ),
    AmountPattern(
        name='dr_cr_suffix',
        regex=re.compile(
            r'([0-9]{1,3}(?:[,\s][0-9]{3})*(?:[.,][0-9]+)?)\s*\((Dr|Cr)\)',
            re.IGNORECASE,
        ),
        amount_group=1,
        requires=(),
        resolve_type=_type_from_suffix,
    ),
)


def map_columns(headers) -> Dict[str, int]:
    """Bind roles to column positions by case-insensitive header substrings."""
    column_map = {}
    for idx, header in enumerate(headers):
        header = (header or '').lower()
        for role, markers in COLUMN_ROLES.items():
            if any(marker in header for marker in markers):
                column_map[role] = idx
    return column_map


def collapse_to_blocks(text: str) -> List[str]:
    """
    Group document lines into blocks.

    A block is a run of non-blank lines; a blank line or a line starting with
    "page" ends it. Lines inside a block are joined with single spaces.
    """
    blocks = []
    current = []
    for line in (text or '').splitlines():
        trimmed = line.strip()
        if not trimmed or trimmed.lower().startswith('page'):
            if current:
                blocks.append(' '.join(current))
                current = []
        else:
            current.append(trimmed)
    if current:
        blocks.append(' '.join(current))
    return blocks


def extract_amount(normalized: str, max_likely_amount: int = MAX_LIKELY_AMOUNT) -> Optional[Tuple[Decimal, Optional[str]]]:
    """Apply AMOUNT_PATTERNS to a block, returning (amount, type) or None."""
    lowered = normalized.lower()
    for pattern in AMOUNT_PATTERNS:
        if pattern.requires and not any(marker in lowered for marker in pattern.requires):
            continue
        match = pattern.regex.search(normalized)
        if not match:
            continue
        amount = clean_amount(match.group(pattern.amount_group), max_likely_amount)
        if amount is None:
            logger.debug(f"Pattern {pattern.name} matched an implausible amount: {match.group(0)}")
            continue
        return amount, pattern.resolve_type(match, lowered)
    return None


def extract_block(block: str, max_likely_amount: int = MAX_LIKELY_AMOUNT) -> Optional[RawRecord]:
    """Turn one statement block into a raw record, or None if it states no amount."""
    normalized = re.sub(r'\s+', ' ', block.strip())
    lowered = normalized.lower()
    if any(marker in lowered for marker in SKIP_BLOCK_MARKERS):
        return None

    found = extract_amount(normalized, max_likely_amount)
    if found is None:
        return None

    amount, txn_type = found
    return {
        'date': find_date_in_text(normalized),
        'description': truncate(normalized, DESCRIPTION_MAX_LENGTH),
        'amount': amount,
        'type': txn_type,
        'original_category': None,
    }


class TransactionExtractor:
    """Extracts raw transaction records from loaded file content."""

    def __init__(self, max_likely_amount: int = MAX_LIKELY_AMOUNT):
        self.logger = logging.getLogger(self.__class__.__name__)
        self.max_likely_amount = max_likely_amount

    def extract(self, file_type: str, content) -> Iterator[RawRecord]:
        if file_type == 'csv':
            return self.extract_from_csv_rows(content)
        if file_type == 'excel':
            return self.extract_from_sheet_rows(content)
        return self.extract_from_text(content)

    def extract_from_csv_rows(self, rows: List[CsvRow]) -> Iterator[RawRecord]:
        """
        Extract transactions from delimited-text rows.

        Args:
            rows: Rows of cell strings, the first being the header

        Yields:
            One raw record per data row
        """
        if not rows:
            return
        column_map = map_columns(rows[0])
        self.logger.info(f"Column mapping: {column_map}")

        for row_num, row in enumerate(rows[1:], start=2):
            if not row:
                continue
            try:
                record = self._extract_csv_row(row, column_map)
            except Exception as e:
                self.logger.warning(f"Skipping row {row_num}: {e}")
                continue
            yield record

    def _extract_csv_row(self, row: CsvRow, column_map: Dict[str, int]) -> RawRecord:
        def cell(role):
            idx = column_map.get(role)
            if idx is None or idx >= len(row):
                return None
            return row[idx]

        record = {
            'date': normalize_date(cell('date')),
            'description': None,
            'amount': None,
            'type': cell('type'),
            'original_category': cell('category'),
        }

        if 'description' in column_map and column_map['description'] < len(row):
            record['description'] = cell('description')
        else:
            record['description'] = row[min(1, len(row) - 1)]

        if 'amount' in column_map and column_map['amount'] < len(row):
            raw = re.sub(r'[^0-9.,\-]', '', cell('amount') or '')
            record['amount'] = clean_amount(raw, self.max_likely_amount)
        else:
            # No amount column: the first sane numeric-looking cell wins
            for value in row:
                amount = clean_amount(value, self.max_likely_amount)
                if amount is not None:
                    record['amount'] = amount
                    break

        return record

    def extract_from_sheet_rows(self, rows: List[SheetRow]) -> Iterator[RawRecord]:
        """
        Extract transactions from spreadsheet rows of the first sheet.

        Numeric cells fill the amount only while it is unset, so a later
        numeric column such as a running balance never replaces it.
        """
        if not rows:
            return
        headers = {
            cell.column: cell.value.lower()
            for cell in rows[0] if cell.kind == 'string'
        }

        for row_num, row in enumerate(rows[1:], start=2):
            record = {'date': None, 'description': None, 'amount': None,
                      'type': None, 'original_category': None}
            for cell in row:
                try:
                    self._apply_sheet_cell(record, cell, headers.get(cell.column, ''))
                except Exception as e:
                    self.logger.warning(f"Skipping cell {cell.column} of row {row_num}: {e}")
            yield record

    def _apply_sheet_cell(self, record: RawRecord, cell, head: str) -> None:
        if cell.kind == 'string':
            if 'date' in head:
                record['date'] = normalize_date(cell.value)
            elif 'desc' in head or 'narration' in head:
                record['description'] = cell.value
            elif 'category' in head:
                record['original_category'] = cell.value
            elif 'type' in head:
                record['type'] = cell.value
            elif ('amount' in head or 'amt' in head) and not record['amount']:
                record['amount'] = clean_amount(cell.value, self.max_likely_amount)
            elif record['description'] is None:
                record['description'] = cell.value
        elif cell.kind == 'date':
            value = cell.value
            record['date'] = value.date() if isinstance(value, datetime) else value
        elif cell.kind == 'numeric':
            if not record['amount']:
                record['amount'] = Decimal(str(cell.value))
        elif cell.kind == 'formula':
            if isinstance(cell.value, (int, float)) and not isinstance(cell.value, bool):
                record['amount'] = Decimal(str(cell.value))
            elif isinstance(cell.value, str) and record['description'] is None:
                record['description'] = cell.value

    def extract_from_text(self, text: str) -> Iterator[RawRecord]:
        """
        Extract transactions from statement document text.

        Blocks with no recognizable amount are skipped silently.
        """
        blocks = collapse_to_blocks(text)
        self.logger.info(f"Segmented document into {len(blocks)} blocks")

        for block_num, block in enumerate(blocks, start=1):
            try:
                record = extract_block(block, self.max_likely_amount)
            except Exception as e:
                self.logger.warning(f"Skipping block {block_num}: {e}")
                continue
            if record is not None:
                yield record
