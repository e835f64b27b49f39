import csv
import logging
from typing import Iterable

import pandas as pd

from schema import Transaction

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = ['Date', 'Description', 'Amount', 'Type', 'OriginalCategory', 'CorrectedCategory']


def _row(txn: Transaction) -> list:
    return [
        txn.date.isoformat() if txn.date else '',
        txn.description or '',
        format(txn.amount, 'f') if txn.amount is not None else '',
        txn.type or '',
        txn.original_category or '',
        txn.corrected_category or '',
    ]


def export_to_csv_bytes(transactions: Iterable[Transaction], encoding: str = 'utf-8') -> bytes:
    """
    Render transactions as CSV under the fixed six-column header.

    Fields containing a comma, quote or line break are quoted, with inner
    quotes doubled. Amounts are written as plain digits without grouping.
    """
    df = pd.DataFrame([_row(txn) for txn in transactions], columns=EXPORT_COLUMNS, dtype=str)
    text = df.to_csv(index=False, quoting=csv.QUOTE_MINIMAL, lineterminator='\n')
    logger.info(f"Exported {len(df)} transactions to CSV")
    return text.encode(encoding)
