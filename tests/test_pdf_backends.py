import os
import re
import sys
from dataclasses import replace
from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest

from freelance_forge.app.core.errors import PdfBackendError, PdfBackendTimeoutError
from freelance_forge.app.core.settings import Settings
from freelance_forge.app.services.document_renderer import build_render_context
from freelance_forge.app.services import pdf_backends
from freelance_forge.app.services.pdf_backends import (
    BUILTIN_FONTS,
    SYSTEM_FONT_CANDIDATES,
    ExternalConverterBackend,
    NativePdfBackend,
    get_pdf_backend,
)


def make_context(item_count: int = 2):
    invoice = SimpleNamespace(
        id=7,
        invoice_number="IN-00007",
        date=date(2024, 5, 17),
        client_name="Acme GmbH",
        client_address="Hauptstrasse 1\nBerlin",
        issuer_address="Jane Doe\nMain Street 5",
        company=SimpleNamespace(name="Doe Consulting"),
        currency="EUR",
        total_amount=None,
    )
    items = [
        SimpleNamespace(
            description=f"Consulting block {index + 1}",
            quantity=Decimal("2"),
            unit_price=Decimal("617.25"),
            use_quantity=True,
            line_total=Decimal("1234.50"),
        )
        for index in range(item_count)
    ]
    return build_render_context(invoice, items)


def page_count(pdf: bytes) -> int:
    return max(int(value) for value in re.findall(rb"/Count (\d+)", pdf))


def fake_converter(script: str):
    return [sys.executable, "-c", script]


def test_native_backend_renders_invoice_fields():
    context = make_context()
    pdf = NativePdfBackend().render("<html></html>", context)
    assert pdf.startswith(b"%PDF")
    assert b"(Invoice ID: 7) Tj" in pdf
    assert b"(Date: 2024-05-17) Tj" in pdf
    assert b"(Acme GmbH) Tj" in pdf
    assert b"(Doe Consulting) Tj" in pdf
    assert b"(1.234,50 EUR) Tj" in pdf
    assert b"(2.469,00 EUR) Tj" in pdf
    assert pdf.index(b"(Consulting block 1) Tj") < pdf.index(b"(Consulting block 2) Tj")


def test_native_backend_paginates_long_item_lists():
    context = make_context(item_count=80)
    pdf = NativePdfBackend().render("", context)
    assert page_count(pdf) > 1
    assert pdf.count(b"(Description) Tj") >= 2
    assert b"(Consulting block 80) Tj" in pdf
    assert b"(Invoice IN-00007 \\(continued\\)) Tj" in pdf


def test_native_backend_is_deterministic():
    context = make_context()
    backend = NativePdfBackend()
    assert backend.render("", context) == backend.render("", context)


def test_external_backend_returns_converter_output():
    script = "import sys; data = sys.stdin.buffer.read(); sys.stdout.buffer.write(b'%PDF-1.4 ' + data)"
    backend = ExternalConverterBackend(fake_converter(script), timeout_seconds=10)
    pdf = backend.render("<html>hello</html>", make_context())
    assert pdf == b"%PDF-1.4 <html>hello</html>"


def test_external_backend_reports_non_zero_exit():
    script = "import sys; sys.stdin.read(); sys.stderr.write('converter exploded'); sys.exit(3)"
    backend = ExternalConverterBackend(fake_converter(script), timeout_seconds=10)
    with pytest.raises(PdfBackendError) as excinfo:
        backend.render("<html></html>", make_context())
    assert excinfo.value.diagnostic == "converter exploded"
    assert excinfo.value.status_code == 502


def test_external_backend_times_out():
    script = "import time; time.sleep(10)"
    backend = ExternalConverterBackend(fake_converter(script), timeout_seconds=0.5)
    with pytest.raises(PdfBackendTimeoutError) as excinfo:
        backend.render("<html></html>", make_context())
    assert excinfo.value.status_code == 504


def test_external_backend_missing_binary():
    backend = ExternalConverterBackend("/nonexistent/html-to-pdf --quiet - -")
    with pytest.raises(PdfBackendError, match="could not be started"):
        backend.render("<html></html>", make_context())


def test_external_backend_rejects_non_pdf_output():
    script = "import sys; sys.stdin.read(); sys.stdout.write('not a pdf')"
    backend = ExternalConverterBackend(fake_converter(script), timeout_seconds=10)
    with pytest.raises(PdfBackendError, match="did not produce a PDF"):
        backend.render("<html></html>", make_context())


def test_external_backend_rejects_empty_command():
    with pytest.raises(ValueError):
        ExternalConverterBackend("")


def test_get_pdf_backend_follows_settings():
    assert isinstance(get_pdf_backend(Settings(pdf_backend="native")), NativePdfBackend)
    backend = get_pdf_backend(Settings(pdf_backend="external", pdf_converter_command="wkhtmltopdf - -"))
    assert isinstance(backend, ExternalConverterBackend)
    assert backend.command == ["wkhtmltopdf", "-", "-"]


def find_system_font():
    for regular_path, _ in SYSTEM_FONT_CANDIDATES:
        if os.path.isfile(regular_path):
            return regular_path
    return None


def test_native_backend_embeds_unicode_font_for_non_latin_clients():
    font_path = find_system_font()
    if font_path is None:
        pytest.skip("no DejaVu Sans font installed")
    context = replace(make_context(), client_name="ООО Ромашка")
    backend = NativePdfBackend(font_path=font_path)
    pdf = backend.render("", context)
    assert backend.font == "Forge-DejaVuSans"
    assert b"DejaVuSans" in pdf
    assert b"/ToUnicode" in pdf
    assert b"(Invoice ID: 7) Tj" in pdf
    assert backend.render("", context) == pdf


def test_native_backend_rejects_missing_font_file():
    with pytest.raises(ValueError, match="font file not found"):
        NativePdfBackend(font_path="/nonexistent/fonts/Missing.ttf")


def test_native_backend_falls_back_to_builtin_fonts(monkeypatch):
    monkeypatch.setattr(pdf_backends, "SYSTEM_FONT_CANDIDATES", ())
    backend = NativePdfBackend()
    assert (backend.font, backend.font_bold) == BUILTIN_FONTS
    assert backend.render("", make_context()).startswith(b"%PDF")
