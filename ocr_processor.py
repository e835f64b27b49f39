import io
import logging
from typing import Iterator, List, Optional

import fitz  # PyMuPDF for page rendering
import pytesseract
from PIL import Image

logger = logging.getLogger(__name__)


class TesseractEngine:
    """Default OCR engine: recognizes text on a rendered page image."""

    def __init__(self, language: str = 'eng'):
        self.language = language

    def recognize(self, image: Image.Image) -> str:
        return pytesseract.image_to_string(image, lang=self.language)


def render_pages(data: bytes, dpi: int = 200) -> Iterator[Image.Image]:
    """Render each page of a PDF byte stream to an RGB image."""
    pdf_document = fitz.open(stream=data, filetype="pdf")
    try:
        for page in pdf_document:
            pix = page.get_pixmap(dpi=dpi)
            yield Image.open(io.BytesIO(pix.tobytes("png"))).convert("RGB")
    finally:
        pdf_document.close()


class OCRProcessor:
    """Handles OCR processing for scanned documents."""

    def __init__(self, engine=None, dpi: int = 200, language: str = 'eng'):
        self.engine = engine if engine is not None else TesseractEngine(language)
        self.dpi = dpi
        self.logger = logging.getLogger(self.__class__.__name__)

    def process_scanned_pdf(self, data: bytes) -> List[str]:
        """
        Process scanned PDF using OCR.

        A page whose recognition fails contributes no text; the remaining
        pages are still processed.

        Args:
            data: Raw PDF bytes

        Returns:
            List of extracted text from each page
        """
        self.logger.info(f"Processing scanned PDF with OCR at {self.dpi} DPI")

        extracted_texts = []
        for page_num, image in enumerate(render_pages(data, self.dpi), start=1):
            text = self._recognize_page(image, page_num)
            if text:
                extracted_texts.append(text)

        return extracted_texts

    def _recognize_page(self, image, page_num: int) -> Optional[str]:
        try:
            text = self.engine.recognize(image)
        except Exception as e:
            self.logger.warning(f"OCR failed on page {page_num}: {e}")
            return None
        self.logger.info(f"Recognized {len(text or '')} characters on page {page_num}")
        return text
