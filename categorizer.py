import re
import logging
from collections.abc import Mapping
from decimal import Decimal
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, Optional, Sequence

import pandas as pd
from rapidfuzz.distance import Levenshtein

from config import DEFAULT_CONFIG
from preprocess import normalize_key
from schema import UNCATEGORIZED, CategoryRule, Transaction

logger = logging.getLogger(__name__)

BUILT_IN_RULES = (
    CategoryRule(keyword="zomato", category="Food"),
    CategoryRule(keyword="swiggy", category="Food"),
    CategoryRule(keyword="uber", category="Travel"),
    CategoryRule(keyword="ola", category="Travel"),
    CategoryRule(keyword="amazon", category="Shopping"),
    CategoryRule(keyword="flipkart", category="Shopping"),
    CategoryRule(keyword="petrol", category="Fuel"),
    CategoryRule(keyword="fuel", category="Fuel"),
    CategoryRule(keyword="electricity", category="Bills"),
    CategoryRule(keyword="netflix", category="Entertainment"),
    CategoryRule(keyword="spotify", category="Entertainment"),
    CategoryRule(keyword="restaurant", category="Food"),
    CategoryRule(keyword="hotel", category="Travel"),
)

# Words that mark a description as a business rather than an individual
BUSINESS_INDICATORS = (
    'shop', 'store', 'services', 'station', 'bakery', 'cafe', 'restaurant',
    'fuel', 'petrol', 'bank', 'pvt', 'ltd', 'enterprise', 'payments', 'payment',
    'inr', 'upi', 'transaction', 'cashback', 'gift', 'card',
)

_PERSON_TOKEN = re.compile(r'[A-Za-z.]+')
_WORD_SPLIT = re.compile(r'\W+')


def fuzzy_contains(text: str, keyword: str) -> bool:
    """Substring match, else a per-token match within a small edit distance."""
    if text is None or keyword is None:
        return False
    text = text.lower()
    keyword = keyword.lower()

    if keyword in text:
        return True

    max_dist = min(2, max(1, len(keyword) // 3))
    for token in _WORD_SPLIT.split(text):
        if not token.strip():
            continue
        if Levenshtein.distance(token, keyword, score_cutoff=max_dist) <= max_dist:
            return True
        if token in keyword or keyword in token:
            return True
    return False


def is_likely_person_name(description: Optional[str]) -> bool:
    """Short, purely alphabetic descriptions without business words read as a person."""
    if description is None:
        return False
    s = description.strip()
    if re.search(r'\d', s):
        return False

    lower = s.lower()
    if any(word in lower for word in BUSINESS_INDICATORS):
        return False

    tokens = s.split()
    if not tokens or len(tokens) > 3:
        return False
    return all(_PERSON_TOKEN.fullmatch(token) for token in tokens)


def read_dictionary_file(path: Path) -> Dict[str, str]:
    """
    Read a keyword,category table into normalized-key entries.

    The header row is optional. Tables that are not well-formed delimited
    text are read line by line, splitting on the first comma.

    Args:
        path: Location of the table

    Returns:
        Insertion-ordered mapping of normalized keyword to category
    """
    try:
        df = pd.read_csv(path, header=None, dtype=str, keep_default_na=False, encoding='utf-8')
        pairs = [
            (row[0], row[1]) for row in df.itertuples(index=False, name=None)
            if len(row) >= 2 and not pd.isna(row[1])
        ]
    except pd.errors.EmptyDataError:
        return {}
    except pd.errors.ParserError:
        logger.warning(f"Malformed dictionary table {path}, falling back to line split")
        pairs = []
        with open(path, encoding='utf-8') as f:
            for line in f:
                parts = line.rstrip('\r\n').split(',', 1)
                if len(parts) == 2:
                    pairs.append((parts[0], parts[1]))

    entries = {}
    for raw_key, raw_value in pairs:
        key = normalize_key(raw_key)
        value = str(raw_value).strip()
        if not key or not value:
            continue
        if key == 'keyword' and value.lower() == 'category':
            continue
        entries[key] = value
    return entries


class MerchantDictionary(Mapping):
    """
    Read-only mapping of normalized keyword to category.

    External entries always win over built-in rules for the same key.
    Built once per engine and shared by every parse.
    """

    def __init__(self, external: Optional[Dict[str, str]] = None,
                 rules: Iterable[CategoryRule] = BUILT_IN_RULES):
        entries = {}
        for key, category in (external or {}).items():
            key = normalize_key(key)
            if key and category:
                entries[key] = category
        self._external_keys = frozenset(entries)

        for rule in rules:
            entries.setdefault(normalize_key(rule.keyword), rule.category)

        self._entries = MappingProxyType(entries)

    @classmethod
    def load(cls, sources: Optional[Sequence[Path]] = None,
             rules: Iterable[CategoryRule] = BUILT_IN_RULES) -> "MerchantDictionary":
        """Load the first external table found among ``sources``, then merge built-ins."""
        if sources is None:
            sources = DEFAULT_CONFIG.dictionary_sources

        external = {}
        for source in sources:
            source = Path(source)
            if not source.is_file():
                continue
            try:
                external = read_dictionary_file(source)
            except (OSError, UnicodeDecodeError, ValueError) as e:
                logger.warning(f"Could not read merchant dictionary {source}: {e}")
                continue
            logger.info(f"Loaded {len(external)} merchant entries from {source}")
            break
        else:
            logger.info("No merchant dictionary found, using built-in rules only")

        return cls(external, rules)

    def is_external(self, key: str) -> bool:
        return key in self._external_keys

    def __getitem__(self, key: str) -> str:
        return self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


class TransactionCategorizer:
    """Categorizes transactions against the merchant dictionary and built-in rules."""

    def __init__(self, dictionary: Optional[MerchantDictionary] = None,
                 rules: Sequence[CategoryRule] = BUILT_IN_RULES):
        self.logger = logging.getLogger(self.__class__.__name__)
        self.dictionary = dictionary if dictionary is not None else MerchantDictionary.load()
        self.rules = tuple(rules)

    def categorize(self, description: Optional[str]) -> str:
        """
        Resolve a category for a transaction description.

        Order: exact/token dictionary match, fuzzy dictionary match, fuzzy
        built-in rule match, then "Uncategorized". Descriptions that look like
        a person's name only match external dictionary entries.

        Args:
            description: Transaction description, possibly empty

        Returns:
            Category name
        """
        norm = normalize_key(description)
        tokens = norm.split()
        person = is_likely_person_name(description)

        for key, category in self.dictionary.items():
            if person and not self.dictionary.is_external(key):
                continue
            if key and (key in norm or key in tokens):
                self.logger.debug(f"Exact match '{key}' -> {category}")
                return category

        for key, category in self.dictionary.items():
            if person and not self.dictionary.is_external(key):
                continue
            if key and fuzzy_contains(norm, key):
                self.logger.debug(f"Fuzzy dictionary match '{key}' -> {category}")
                return category

        if not person:
            for rule in self.rules:
                if fuzzy_contains(norm, normalize_key(rule.keyword)):
                    self.logger.debug(f"Fuzzy rule match '{rule.keyword}' -> {rule.category}")
                    return rule.category

        return UNCATEGORIZED

    def build_transaction(self, record: dict, source_file: Optional[str] = None) -> Transaction:
        """Finish a raw parser record into an immutable, categorized Transaction."""
        amount = record.get('amount')
        return Transaction(
            date=record.get('date'),
            description=record.get('description') or '',
            amount=amount if amount is not None else Decimal('0'),
            type=record.get('type'),
            original_category=record.get('original_category'),
            corrected_category=self.categorize(record.get('description')),
            source_file=source_file,
        )
