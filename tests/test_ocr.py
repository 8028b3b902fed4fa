"""
Tests for the OCR providers. Tesseract and poppler are patched out.
"""

import io
from unittest.mock import MagicMock, patch

import pytest
from PIL import Image

from receipt_app.services.ocr import (
    MOCK_TEXT,
    MockOCRService,
    OCRError,
    OCRService,
    get_ocr_provider,
)

LONG_PDF_TEXT = "ACME CORP\nInvoice #: 1001\nSubtotal: $100.00\nTax 7%\nTotal: $107.00"


def png_bytes():
    buffer = io.BytesIO()
    Image.new('RGB', (40, 20), 'white').save(buffer, format='PNG')
    return buffer.getvalue()


def fake_reader(*page_texts):
    reader = MagicMock()
    reader.pages = [MagicMock(**{'extract_text.return_value': text}) for text in page_texts]
    return reader


def test_is_pdf_checks_magic_bytes():
    assert OCRService.is_pdf(b'%PDF-1.7\n...')
    assert not OCRService.is_pdf(png_bytes())
    assert not OCRService.is_pdf(b'')


def test_mock_provider_returns_fixed_text(tmp_path):
    assert MockOCRService().extract_text(tmp_path / "anything.png") == MOCK_TEXT


def test_provider_factory():
    assert isinstance(get_ocr_provider('mock'), MockOCRService)
    assert isinstance(get_ocr_provider('tesseract'), OCRService)


@patch('receipt_app.services.ocr.pytesseract.image_to_string', return_value="Total 5.00")
def test_image_is_preprocessed_and_recognized(image_to_string, tmp_path):
    path = tmp_path / "receipt.png"
    path.write_bytes(png_bytes())

    assert OCRService().extract_text(path) == "Total 5.00"

    image = image_to_string.call_args.args[0]
    assert image.mode == 'L'
    assert image_to_string.call_args.kwargs['lang'] == 'eng+spa'


def test_unreadable_image_raises_ocr_error(tmp_path):
    path = tmp_path / "broken.jpg"
    path.write_bytes(b'not an image')
    with pytest.raises(OCRError):
        OCRService().extract_text(path)


def test_missing_file_raises_ocr_error(tmp_path):
    with pytest.raises(OCRError):
        OCRService().extract_text(tmp_path / "gone.png")


class TestPdfExtraction:

    @patch('receipt_app.services.ocr.convert_from_bytes')
    @patch('receipt_app.services.ocr.PyPDF2.PdfReader')
    def test_text_layer_used_when_present(self, pdf_reader, convert, tmp_path):
        pdf_reader.return_value = fake_reader(LONG_PDF_TEXT, "Page two")
        path = tmp_path / "invoice.bin"
        path.write_bytes(b'%PDF-1.4 body')

        text = OCRService().extract_text(path)

        assert text == LONG_PDF_TEXT + "\n\nPage two"
        convert.assert_not_called()

    @patch('receipt_app.services.ocr.pytesseract.image_to_string', side_effect=["page one", "page two"])
    @patch('receipt_app.services.ocr.convert_from_bytes')
    @patch('receipt_app.services.ocr.PyPDF2.PdfReader')
    def test_scanned_pdf_falls_back_to_ocr(self, pdf_reader, convert, image_to_string, tmp_path):
        pdf_reader.return_value = fake_reader("", None)
        convert.return_value = [Image.new('RGB', (10, 10)), Image.new('RGB', (10, 10))]
        path = tmp_path / "scan.pdf"
        path.write_bytes(b'%PDF-1.4 body')

        text = OCRService().extract_text(path)

        assert text == "page one\n\npage two"
        assert convert.call_args.kwargs['dpi'] == 300

    @patch('receipt_app.services.ocr.convert_from_bytes', side_effect=RuntimeError("poppler missing"))
    @patch('receipt_app.services.ocr.PyPDF2.PdfReader', side_effect=ValueError("bad xref"))
    def test_unreadable_pdf_raises_ocr_error(self, pdf_reader, convert, tmp_path):
        path = tmp_path / "broken.pdf"
        path.write_bytes(b'%PDF-garbage')
        with pytest.raises(OCRError):
            OCRService().extract_text(path)
