"""
Pytest configuration and shared fixtures.

Registers the integration marker and provides PDF builders plus stand-ins
for the vision extractor and rasterizer so pipeline tests make no network calls.
"""

import fitz
import pytest
from src.core.errors import ScanError
from src.models.receipt import ExtractionResult


def pytest_addoption(parser):
    """Add custom command-line options"""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration tests against the real vision API"
    )


def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line(
        "markers",
        "integration: mark test as integration test requiring a real ANTHROPIC_API_KEY"
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --run-integration is specified"""
    if config.getoption("--run-integration"):
        return

    skip_integration = pytest.mark.skip(reason="need --run-integration option to run")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


def build_pdf(pages: int, text: str = "ACME HARDWARE") -> bytes:
    doc = fitz.open()
    for n in range(1, pages + 1):
        page = doc.new_page(width=300, height=400)
        page.insert_text((36, 60), f"{text} - page {n}", fontsize=12)
    data = doc.tobytes()
    doc.close()
    return data


def make_result(total=45.99, confidence=0.95, vendor="ACME Hardware") -> ExtractionResult:
    return ExtractionResult.model_validate({
        "vendor": {"value": vendor, "confidence": 0.9},
        "date": {"value": "2025-03-14", "confidence": 1.0},
        "total": {"value": total, "confidence": confidence},
        "subtotal": {"value": None, "confidence": 0},
        "tax": {"value": None, "confidence": 0},
        "paymentMethod": {"value": "VISA", "confidence": 0.8},
        "lineItems": [{"description": "Hammer", "amount": 19.99, "quantity": 1}],
        "rawText": f"{vendor}\nTOTAL {total}",
    })


class StubExtractor:
    """Returns (or raises) queued outcomes in order and records every call"""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    async def extract(self, images, variant):
        self.calls.append({"images": list(images), "variant": variant})
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, ScanError):
            raise outcome
        return outcome


class FakeRasterizer:
    """PageRasterizer stand-in with a fixed page count and optional failing pages"""

    def __init__(self, page_count=1, failing_pages=()):
        self._page_count = page_count
        self.failing_pages = set(failing_pages)
        self.render_calls = []
        self.page_count_calls = 0

    def rasterize(self, document, page_number, scale=None):
        self.render_calls.append(page_number)
        if page_number in self.failing_pages or page_number > self._page_count:
            return None
        return f"jpeg-page-{page_number}".encode()

    def page_count(self, document):
        self.page_count_calls += 1
        return self._page_count


@pytest.fixture
def pdf_factory():
    return build_pdf


@pytest.fixture
def result_factory():
    return make_result


@pytest.fixture
def stub_extractor():
    return StubExtractor


@pytest.fixture
def fake_rasterizer():
    return FakeRasterizer
