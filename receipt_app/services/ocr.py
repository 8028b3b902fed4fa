"""
OCR service for extracting text from receipt images and PDFs.
"""

import io
import logging
from pathlib import Path
from typing import Union

import pytesseract
from PIL import Image, ImageEnhance
from pdf2image import convert_from_bytes
import PyPDF2

from receipt_app.config import settings

logger = logging.getLogger(__name__)

PDF_MAGIC = b'%PDF'
PAGE_SEPARATOR = '\n\n'
MOCK_TEXT = "MOCK TEXT: TOTAL $88.00"


class OCRError(Exception):
    """Raised when text cannot be extracted from an uploaded file."""


class TextExtractionProvider:
    """Anything that turns a file on disk into recognized text."""

    def extract_text(self, file_path: Union[str, Path]) -> str:
        raise NotImplementedError


class OCRService(TextExtractionProvider):
    """Service for extracting text from receipt files with Tesseract."""

    def __init__(self):
        """Initialize OCR service with Tesseract configuration."""
        pytesseract.pytesseract.tesseract_cmd = settings.TESSERACT_CMD
        # psm 6: assume a single uniform block of text, which suits long receipts
        self.tesseract_config = r'--oem 3 --psm 6'
        self.languages = settings.OCR_LANGUAGES

    def extract_text(self, file_path: Union[str, Path]) -> str:
        """
        Extract text from an image or PDF on disk.

        The file type is detected from its content, not its extension.

        Raises:
            OCRError: The file cannot be read or recognized
        """
        try:
            file_data = Path(file_path).read_bytes()
        except OSError as e:
            raise OCRError(f"Cannot read file {file_path}: {e}") from e

        if self.is_pdf(file_data):
            logger.info("PDF detected by content", extra={"file_path": str(file_path)})
            return self.extract_text_from_pdf(file_data)

        logger.info("Processing file as image", extra={"file_path": str(file_path)})
        return self.extract_text_from_image(file_data)

    @staticmethod
    def is_pdf(file_data: bytes) -> bool:
        """Check the %PDF magic bytes."""
        return file_data[:4] == PDF_MAGIC

    def extract_text_from_image(self, image_data: bytes) -> str:
        """
        Extract text from an image using Tesseract OCR.

        Args:
            image_data: Raw image bytes (JPEG, PNG, etc.)

        Returns:
            Extracted text
        """
        try:
            image = Image.open(io.BytesIO(image_data))
            image = self._preprocess_image(image)
            return pytesseract.image_to_string(
                image, lang=self.languages, config=self.tesseract_config
            )
        except (OSError, pytesseract.TesseractError) as e:
            logger.error("Error extracting text from image", exc_info=True)
            raise OCRError(f"Image text extraction failed: {e}") from e

    def extract_text_from_pdf(self, pdf_data: bytes) -> str:
        """
        Extract text from a PDF file.
        First tries the embedded text layer, then falls back to OCR.

        Args:
            pdf_data: Raw PDF bytes

        Returns:
            Text of every page in document order
        """
        text = self._extract_pdf_text_direct(pdf_data)

        # If little or no text found, PDF might be image-based
        if len(text.strip()) < 50:
            logger.info("PDF appears to be image-based, using OCR")
            text = self._extract_pdf_text_ocr(pdf_data)

        return text

    def _extract_pdf_text_direct(self, pdf_data: bytes) -> str:
        """
        Extract text directly from PDF (for text-based PDFs).

        Returns an empty string when the PDF has no usable text layer.
        """
        try:
            pdf_reader = PyPDF2.PdfReader(io.BytesIO(pdf_data))
            pages = [page.extract_text() or '' for page in pdf_reader.pages]
            return PAGE_SEPARATOR.join(pages)
        except (PyPDF2.errors.PyPdfError, ValueError):
            logger.warning("Direct PDF text extraction failed", exc_info=True)
            return ""

    def _extract_pdf_text_ocr(self, pdf_data: bytes) -> str:
        """Rasterize each PDF page and OCR it."""
        try:
            images = convert_from_bytes(pdf_data, dpi=settings.PDF_DPI)
            pages = []
            for page_num, image in enumerate(images, start=1):
                logger.info("Processing PDF page", extra={"page": page_num})
                image = self._preprocess_image(image)
                pages.append(pytesseract.image_to_string(
                    image, lang=self.languages, config=self.tesseract_config
                ))
            return PAGE_SEPARATOR.join(pages)
        except Exception as e:
            logger.error("Error in OCR-based PDF text extraction", exc_info=True)
            raise OCRError(f"PDF text extraction failed: {e}") from e

    def _preprocess_image(self, image: Image.Image) -> Image.Image:
        """
        Preprocess image to improve OCR accuracy.

        Args:
            image: PIL Image object

        Returns:
            Grayscale image with increased contrast
        """
        if image.mode != 'RGB':
            image = image.convert('RGB')

        image = image.convert('L')

        # Increase contrast; helps with faded thermal receipts
        enhancer = ImageEnhance.Contrast(image)
        return enhancer.enhance(2.0)


class MockOCRService(TextExtractionProvider):
    """Fixed-text provider for local development and tests."""

    def extract_text(self, file_path: Union[str, Path]) -> str:
        return MOCK_TEXT


def get_ocr_provider(provider_type: str = 'tesseract') -> TextExtractionProvider:
    if provider_type == 'tesseract':
        return OCRService()
    return MockOCRService()
