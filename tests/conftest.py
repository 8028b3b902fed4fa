import pytest
from fastapi.testclient import TestClient

from receipt_app.main import app
from receipt_app.routers.receipts import get_text_extractor
from receipt_app.services.ocr import TextExtractionProvider
from receipt_app.services.parser import ReceiptParser
from receipt_app.services.storage import ReceiptStore, get_receipt_store


class FixedTextProvider(TextExtractionProvider):
    """Returns canned text and remembers which files it was asked to read."""

    def __init__(self, text):
        self.text = text
        self.seen_paths = []

    def extract_text(self, file_path):
        self.seen_paths.append(str(file_path))
        return self.text


@pytest.fixture
def parser():
    return ReceiptParser()


@pytest.fixture
def store():
    return ReceiptStore()


@pytest.fixture
def ocr_provider():
    return FixedTextProvider("Acme Corp\nSubtotal: $100.00\nTax 7%\nTotal: $107.00")


@pytest.fixture
def client(store, ocr_provider, tmp_path, monkeypatch):
    monkeypatch.setattr("receipt_app.config.settings.UPLOAD_DIR", str(tmp_path))
    app.dependency_overrides[get_text_extractor] = lambda: ocr_provider
    app.dependency_overrides[get_receipt_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()
