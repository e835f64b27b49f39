"""
Aggregate figures over statements and transaction collections.

Two independent consumers of parser output live here: the printed-summary
extractor, which reads totals and balances straight from document text, and
the totals/category aggregators, which sum a transaction collection.
"""
import re
import logging
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, Optional

from preprocess import MAX_LIKELY_AMOUNT, clean_amount
from schema import UNCATEGORIZED, Transaction, TransactionType

logger = logging.getLogger(__name__)

_SUMMARY_AMOUNT = r'\s*[:\-]?\s*([0-9,]+(?:[.,][0-9]+)?)\s*(?:\((?:Dr|Cr)\))?'

SUMMARY_PATTERNS = {
    'total_withdrawal': re.compile(r'Total\s+Withdrawal\s+Amount' + _SUMMARY_AMOUNT, re.IGNORECASE),
    'total_deposit': re.compile(r'Total\s+Deposit\s+Amount' + _SUMMARY_AMOUNT, re.IGNORECASE),
    'opening_balance': re.compile(r'Opening\s+Balance' + _SUMMARY_AMOUNT, re.IGNORECASE),
    'closing_balance': re.compile(r'Closing\s+Balance' + _SUMMARY_AMOUNT, re.IGNORECASE),
}

DEBIT_MARKERS = ('DEBIT', 'DR', 'D')
CREDIT_MARKERS = ('CREDIT', 'CR')

DEBIT_HINTS = ('debit', 'debited', 'paid to', 'paid -', 'dr')
CREDIT_HINTS = ('credit', 'received from', 'credited')
CREDIT_CATEGORY_HINTS = ('salary', 'credit', 'income')


def extract_summary(text: str, max_likely_amount: int = MAX_LIKELY_AMOUNT) -> Dict[str, Decimal]:
    """
    Pull printed statement totals out of raw document text.

    Args:
        text: Extracted document text

    Returns:
        Mapping with any of total_withdrawal, total_deposit, opening_balance
        and closing_balance. Figures that are not printed are absent.
    """
    out = {}
    if not text or not text.strip():
        return out

    text = text.replace('\u00a0', ' ')
    for key, pattern in SUMMARY_PATTERNS.items():
        match = pattern.search(text)
        if not match:
            continue
        value = clean_amount(match.group(1), max_likely_amount)
        if value is not None:
            out[key] = value

    logger.debug(f"Statement summary fields found: {list(out)}")
    return out


def infer_type(txn: Transaction) -> Optional[str]:
    """Guess DEBIT/CREDIT from the description, then the category."""
    desc = (txn.description or '').lower()
    if any(hint in desc for hint in DEBIT_HINTS):
        return TransactionType.DEBIT.value
    if any(hint in desc for hint in CREDIT_HINTS):
        return TransactionType.CREDIT.value

    category = (txn.corrected_category or '').lower()
    if any(hint in category for hint in CREDIT_CATEGORY_HINTS):
        return TransactionType.CREDIT.value
    return None


def effective_type(txn: Transaction) -> Optional[str]:
    """The stored type when recognizable, otherwise an inferred one."""
    if txn.type:
        marker = txn.type.strip().upper()
        if marker in DEBIT_MARKERS:
            return TransactionType.DEBIT.value
        if marker in CREDIT_MARKERS:
            return TransactionType.CREDIT.value
    return infer_type(txn)


def in_window(txn: Transaction, start: Optional[date] = None, end: Optional[date] = None) -> bool:
    if start is not None and (txn.date is None or txn.date < start):
        return False
    if end is not None and (txn.date is None or txn.date > end):
        return False
    return True


def compute_totals(transactions: Iterable[Transaction],
                   start: Optional[date] = None,
                   end: Optional[date] = None) -> Dict[str, Decimal]:
    """
    Sum debits and credits, optionally within an inclusive date window.

    Undated transactions are left out whenever a bound is given. Transactions
    whose direction cannot be resolved count towards neither total.

    Returns:
        Mapping with total_debit, total_credit and net (credit minus debit)
    """
    total_debit = Decimal('0')
    total_credit = Decimal('0')

    for txn in transactions:
        if txn is None or not in_window(txn, start, end):
            continue
        amount = txn.amount if txn.amount is not None else Decimal('0')
        direction = effective_type(txn)
        if direction == TransactionType.DEBIT.value:
            total_debit += amount
        elif direction == TransactionType.CREDIT.value:
            total_credit += amount

    return {
        'total_debit': total_debit,
        'total_credit': total_credit,
        'net': total_credit - total_debit,
    }


def summarize_by_category(transactions: Iterable[Transaction]) -> Dict[str, Decimal]:
    """Sum amounts per corrected category, in order of first appearance."""
    sums = {}
    for txn in transactions:
        category = txn.corrected_category or UNCATEGORIZED
        amount = txn.amount if txn.amount is not None else Decimal('0')
        sums[category] = sums.get(category, Decimal('0')) + amount
    return sums
