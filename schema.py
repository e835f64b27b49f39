import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from preprocess import truncate

DESCRIPTION_MAX_LENGTH = 2000
UNCATEGORIZED = "Uncategorized"


class TransactionType(str, Enum):
    DEBIT = "DEBIT"
    CREDIT = "CREDIT"


class CategoryRule(BaseModel):
    """Built-in keyword hint used when the merchant dictionary has no match."""
    model_config = ConfigDict(frozen=True)

    keyword: str
    category: str


class Transaction(BaseModel):
    """Normalized transaction record produced by every parser."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    date: Optional[dt.date] = Field(None, description="Transaction date, absent when undetectable")
    description: str = Field("", description="Free text, truncated to the storage limit")
    amount: Decimal = Field(Decimal("0"), description="Non-negative by convention, sign carried by type")
    type: Optional[str] = Field(None, description="Raw direction marker as the issuer wrote it (DEBIT, CREDIT, DR, Cr, ...), not limited to TransactionType")
    original_category: Optional[str] = Field(None, alias="originalCategory")
    corrected_category: str = Field(UNCATEGORIZED, alias="correctedCategory")
    source_file: Optional[str] = Field(None, alias="sourceFile")

    @field_validator('description', mode='before')
    @classmethod
    def truncate_description(cls, v):
        """Keep descriptions within the storage column size."""
        if v is None:
            return ""
        return truncate(str(v), DESCRIPTION_MAX_LENGTH)

    @field_validator('amount', mode='before')
    @classmethod
    def default_amount(cls, v):
        return Decimal("0") if v is None else v

    @field_validator('type', 'original_category', mode='before')
    @classmethod
    def blank_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator('corrected_category', mode='before')
    @classmethod
    def default_category(cls, v):
        if v is None or not str(v).strip():
            return UNCATEGORIZED
        return v


class UploadResult(BaseModel):
    """Response of an upload: parsed transactions plus category sums, or an error."""
    transactions: List[Transaction] = Field(default_factory=list)
    summary: Dict[str, Decimal] = Field(default_factory=dict)
    total_count: int = Field(0, ge=0, description="Total number of transactions")
    error: Optional[str] = None

    @field_validator('total_count')
    @classmethod
    def validate_count(cls, v, info: ValidationInfo):
        """Ensure count matches actual transaction list length."""
        transactions = info.data.get('transactions')
        if transactions is not None and v != len(transactions):
            return len(transactions)
        return v

    @property
    def ok(self) -> bool:
        return self.error is None
