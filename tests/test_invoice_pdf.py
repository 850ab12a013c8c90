from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest

from freelance_forge.app.core.errors import TemplateRenderError
from freelance_forge.app.services.invoice_pdf import generate_invoice_pdf, pdf_filename
from freelance_forge.app.services.pdf_backends import NativePdfBackend, PdfRenderBackend
from freelance_forge.app.services.template_resolver import ResolvedTemplate, default_template


class RecordingBackend(PdfRenderBackend):
    name = "recording"

    def __init__(self):
        self.html = None

    def render(self, html, context):
        self.html = html
        return b"%PDF-1.4 recorded"


def make_invoice():
    return SimpleNamespace(
        id=3,
        invoice_number="IN-00003",
        date=date(2024, 1, 31),
        client_name="Globex",
        client_address="1 Infinite Loop",
        issuer_address="Main Street 5",
        company=None,
        currency="USD",
        total_amount=Decimal("1234.50"),
    )


def make_items():
    return [
        SimpleNamespace(
            description="Audit",
            quantity=Decimal("1"),
            unit_price=Decimal("1234.50"),
            use_quantity=True,
            line_total=Decimal("1234.50"),
        )
    ]


def test_generate_invoice_pdf_with_default_template():
    backend = RecordingBackend()
    pdf = generate_invoice_pdf(make_invoice(), make_items(), default_template(), backend)
    assert pdf.content == b"%PDF-1.4 recorded"
    assert pdf.filename == "invoice-3.pdf"
    assert pdf.media_type == "application/pdf"
    assert pdf.degraded is False
    assert pdf.headers["Content-Disposition"] == 'attachment; filename="invoice-3.pdf"'
    assert "1,234.50 USD" in backend.html
    assert "Invoice ID: 3" in backend.html


def test_generate_invoice_pdf_with_native_backend():
    pdf = generate_invoice_pdf(make_invoice(), make_items(), default_template(), NativePdfBackend())
    assert pdf.content.startswith(b"%PDF")


def test_broken_custom_template_still_produces_pdf():
    backend = RecordingBackend()
    template = ResolvedTemplate(html="<p>{{#if client_name}}</p>", is_custom=True)
    pdf = generate_invoice_pdf(make_invoice(), make_items(), template, backend)
    assert pdf.degraded is True
    assert "{{#if client_name}}" in backend.html


def test_broken_custom_template_can_be_rejected():
    backend = RecordingBackend()
    template = ResolvedTemplate(html="<p>{{#if client_name}}</p>", is_custom=True)
    with pytest.raises(TemplateRenderError):
        generate_invoice_pdf(make_invoice(), make_items(), template, backend, reject_degraded=True)
    assert backend.html is None


def test_escape_flag_reaches_template_expansion():
    backend = RecordingBackend()
    invoice = make_invoice()
    invoice.client_name = "<Globex & Co>"
    template = ResolvedTemplate(html="<p>{{client_name}}</p>", is_custom=True)
    generate_invoice_pdf(invoice, make_items(), template, backend, escape=True)
    assert "&lt;Globex &amp; Co&gt;" in backend.html


def test_pdf_filename():
    assert pdf_filename(12) == "invoice-12.pdf"
