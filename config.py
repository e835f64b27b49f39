import os
import logging
from pathlib import Path
from typing import List

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

PACKAGED_CATEGORIES = Path(__file__).resolve().parent / "data" / "categories.csv"


def _default_dictionary_sources() -> List[Path]:
    return [
        PACKAGED_CATEGORIES,
        Path("categories.csv"),
        Path("/mnt/data/categories.csv"),
    ]


class EngineConfig(BaseModel):
    """Tunable settings for parsing, categorization and export."""
    max_likely_amount: int = Field(1_000_000, gt=0, description="Bare integers above this are treated as balances")
    ocr_dpi: int = Field(200, gt=0, description="Resolution used when rendering pages for OCR")
    ocr_language: str = Field("eng", description="Tesseract language code")
    dictionary_sources: List[Path] = Field(default_factory=_default_dictionary_sources)
    export_filename: str = "corrected_transactions.csv"
    export_encoding: str = "utf-8"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Build a config, overriding defaults from STATEMENT_* environment variables."""
        overrides = {}

        if os.getenv("STATEMENT_MAX_LIKELY_AMOUNT"):
            overrides["max_likely_amount"] = int(os.environ["STATEMENT_MAX_LIKELY_AMOUNT"])
        if os.getenv("STATEMENT_OCR_DPI"):
            overrides["ocr_dpi"] = int(os.environ["STATEMENT_OCR_DPI"])
        if os.getenv("STATEMENT_OCR_LANGUAGE"):
            overrides["ocr_language"] = os.environ["STATEMENT_OCR_LANGUAGE"]
        if os.getenv("STATEMENT_LOG_LEVEL"):
            overrides["log_level"] = os.environ["STATEMENT_LOG_LEVEL"].upper()

        sources = _default_dictionary_sources()
        if os.getenv("STATEMENT_CATEGORIES_FILE"):
            sources.insert(0, Path(os.environ["STATEMENT_CATEGORIES_FILE"]))
        overrides["dictionary_sources"] = sources

        logger.debug(f"Config overrides from environment: {sorted(overrides)}")
        return cls(**overrides)


DEFAULT_CONFIG = EngineConfig()
