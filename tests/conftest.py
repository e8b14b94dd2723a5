"""
Pytest configuration and fixtures.
"""
import base64
import io
import os
import sys
from unittest.mock import MagicMock, AsyncMock

import fitz  # PyMuPDF
import pytest
from PIL import Image

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Letter and A4 page sizes in points
LETTER = (612, 792)
A4 = (595, 842)


def make_pdf(*sizes, rotation: int = 0) -> bytes:
    """Build a PDF with one page per (width, height) tuple."""
    doc = fitz.open()
    for width, height in sizes or (A4,):
        page = doc.new_page(width=width, height=height)
        page.insert_text((50, 72), "Test Document", fontsize=18)
        if rotation:
            page.set_rotation(rotation)
    data = doc.tobytes()
    doc.close()
    return data


def make_png(width: int = 200, height: int = 100, color=(0, 0, 0, 255)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGBA", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


def make_jpeg(width: int = 200, height: int = 100) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), (20, 20, 20)).save(buffer, format="JPEG")
    return buffer.getvalue()


def data_url(data: bytes, mime: str = "image/png") -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode()}"


@pytest.fixture
def letter_pdf():
    return make_pdf(LETTER)


@pytest.fixture
def a4_pdf():
    return make_pdf(A4, A4)


@pytest.fixture
def sample_png():
    """Wide 200x100 opaque PNG."""
    return make_png()


@pytest.fixture
def sample_png_data_url(sample_png):
    return data_url(sample_png)


@pytest.fixture
def sample_jpeg_data_url():
    return data_url(make_jpeg(), "image/jpeg")


@pytest.fixture
def mock_settings():
    """Create mock settings."""
    settings = MagicMock()
    settings.supabase_url = "https://test.supabase.co"
    settings.supabase_service_role_key = "test-service-key"
    settings.storage_bucket = "public-documents"
    settings.environment = "test"
    settings.debug = True
    settings.min_signature_width = 20.0
    settings.min_signature_height = 10.0
    settings.min_clamped_height = 10.0
    settings.text_baseline_offset = 20.0
    settings.default_font_size = 12.0
    settings.wacom_transparency_threshold = 240
    settings.wacom_max_width = 600
    settings.wacom_max_height = 300
    settings.max_pdf_bytes = 50 * 1024 * 1024
    return settings


@pytest.fixture
def mock_supabase():
    """Create mock Supabase table client."""
    client = MagicMock()

    table_mock = MagicMock()
    table_mock.select.return_value = table_mock
    table_mock.eq.return_value = table_mock
    table_mock.update.return_value = table_mock
    table_mock.insert.return_value = table_mock
    table_mock.execute.return_value = MagicMock(data=[], count=0)

    client.table.return_value = table_mock
    return client


@pytest.fixture
def mock_store(letter_pdf):
    """Async stand-in for SupabaseClient used by the service layer."""
    store = MagicMock()
    store.get_document = AsyncMock(return_value={
        "id": "doc-456",
        "file_path": "uploads/doc-456/contract.pdf",
        "file_name": "Contrato firmado.pdf",
        "original_file_path": None,
        "status": "pendiente",
    })
    store.download_file = AsyncMock(return_value=letter_pdf)
    store.upload_file = AsyncMock(side_effect=lambda path, data, **kwargs: path)
    store.update_document = AsyncMock(return_value={"id": "doc-456"})
    store.get_signature_records = AsyncMock(return_value=[])
    store.get_text_annotations = AsyncMock(return_value=[])
    store.save_signature_entries = AsyncMock(side_effect=lambda doc, rcp, entries, **kwargs: entries)
    return store
