from datetime import date
from decimal import Decimal
from types import SimpleNamespace

from freelance_forge.app.services.document_renderer import (
    DEFAULT_TEMPLATE,
    Degraded,
    Rendered,
    TemplateEngine,
    build_render_context,
    expand_template,
    render_document,
    wrap_in_page_shell,
)


def make_invoice(**overrides):
    data = dict(
        id=42,
        invoice_number="IN-00042",
        date=date(2024, 3, 1),
        client_name="Acme GmbH",
        client_address="Hauptstrasse 1\nBerlin",
        issuer_address="Jane Doe\nMain Street 5",
        company=None,
        currency="eur",
        total_amount=Decimal("1264.50"),
    )
    data.update(overrides)
    return SimpleNamespace(**data)


def make_items():
    return [
        SimpleNamespace(
            description="Website design",
            quantity=Decimal("3"),
            unit_price=Decimal("10.00"),
            use_quantity=True,
            line_total=Decimal("30.00"),
        ),
        SimpleNamespace(
            description="Hosting setup",
            quantity=Decimal("1"),
            unit_price=Decimal("1234.50"),
            use_quantity=False,
            line_total=Decimal("1234.50"),
        ),
    ]


def test_build_render_context_flattens_invoice():
    context = build_render_context(make_invoice(), make_items())
    assert context.invoice_id == 42
    assert context.date == "2024-03-01"
    assert context.currency == "EUR"
    assert context.company_name == ""
    assert context.subtotal == Decimal("1264.50")
    assert [item.description for item in context.items] == ["Website design", "Hosting setup"]


def test_build_render_context_computes_missing_line_totals():
    items = [SimpleNamespace(description="Hours", quantity=2, unit_price=15, use_quantity=True, line_total=None)]
    context = build_render_context(make_invoice(total_amount=None), items)
    assert context.items[0].line_total == Decimal("30.00")
    assert context.total_amount == Decimal("30.00")


def test_each_block_reads_outer_scope_fields():
    outcome = expand_template(
        "{{#each items}}[{{@index}}:{{name}} {{currency}}]{{/each}}",
        {"currency": "USD", "items": [{"name": "a"}, {"name": "b"}]},
    )
    assert isinstance(outcome, Rendered)
    assert outcome.html == "[0:a USD][1:b USD]"


def test_each_else_renders_for_empty_list():
    outcome = expand_template("{{#each items}}x{{else}}none{{/each}}", {"items": []})
    assert outcome.html == "none"


def test_if_and_unless_blocks():
    engine = TemplateEngine()
    source = "{{#if paid}}paid{{else}}open{{/if}}/{{#unless paid}}due{{/unless}}"
    assert engine.render(source, {"paid": True}) == "paid/"
    assert engine.render(source, {"paid": False}) == "open/due"


def test_money_helper_uses_scope_currency_and_explicit_override():
    engine = TemplateEngine()
    data = {"currency": "EUR", "amount": Decimal("1234.5")}
    assert engine.render("{{money amount}}", data) == "1.234,50"
    assert engine.render('{{money amount "USD"}}', data) == "1,234.50"


def test_dotted_paths_and_parent_references():
    engine = TemplateEngine()
    data = {"client": {"name": "Acme"}, "label": "top", "items": [{"label": "inner"}]}
    assert engine.render("{{client.name}}", data) == "Acme"
    assert engine.render("{{#each items}}{{label}}/{{../label}}{{/each}}", data) == "inner/top"


def test_missing_fields_render_empty():
    assert TemplateEngine().render("[{{nothing}}]", {}) == "[]"


def test_values_are_not_escaped_by_default():
    outcome = expand_template("{{name}}", {"name": "<b>Acme</b>"})
    assert outcome.html == "<b>Acme</b>"


def test_escape_option_escapes_double_stash_only():
    outcome = expand_template("{{name}}|{{{name}}}", {"name": "<b>Acme</b>"}, escape=True)
    assert outcome.html == "&lt;b&gt;Acme&lt;/b&gt;|<b>Acme</b>"


def test_syntax_errors_degrade_to_raw_text():
    for source in ("{{#each items}}no close", "{{/if}}", "{{#if a}}{{/each}}", "{{ }}", "{{unclosed"):
        outcome = expand_template(source, {"items": []})
        assert isinstance(outcome, Degraded), source
        assert outcome.raw_text == source
        assert outcome.html == source
        assert outcome.degraded


def test_render_document_wraps_default_template():
    context = build_render_context(make_invoice(), make_items())
    outcome = render_document(DEFAULT_TEMPLATE, False, context)
    assert isinstance(outcome, Rendered)
    html = outcome.html
    assert html.startswith("<!doctype html>")
    assert "Invoice ID: 42" in html
    assert "Date: 2024-03-01" in html
    assert "Acme GmbH" in html
    assert "1.234,50 EUR" in html
    assert "1.264,50 EUR" in html
    assert html.count('<tr class="item-row">') == 2
    assert html.index("Website design") < html.index("Hosting setup")


def test_render_document_keeps_complete_custom_documents_verbatim():
    context = build_render_context(make_invoice(), make_items())
    custom = "<HTML><body>{{client_name}}</body></HTML>"
    outcome = render_document(custom, True, context)
    assert outcome.html == "<HTML><body>Acme GmbH</body></HTML>"


def test_render_document_wraps_custom_fragments():
    context = build_render_context(make_invoice(), make_items())
    outcome = render_document("<p>{{invoice_number}}</p>", True, context)
    assert outcome.html == wrap_in_page_shell("<p>IN-00042</p>", title="Invoice IN-00042")


def test_render_document_degraded_output_is_still_a_document():
    context = build_render_context(make_invoice(), make_items())
    outcome = render_document("<p>{{#each items}}</p>", True, context)
    assert isinstance(outcome, Degraded)
    assert "<html" in outcome.html
    assert "{{#each items}}" in outcome.html


def test_rendering_is_deterministic():
    context = build_render_context(make_invoice(), make_items())
    first = render_document(DEFAULT_TEMPLATE, False, context)
    second = render_document(DEFAULT_TEMPLATE, False, context)
    assert first.html == second.html
