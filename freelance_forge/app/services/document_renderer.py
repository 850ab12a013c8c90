"""Invoice HTML rendering.

Templates use a Handlebars subset compatible with stored user templates:

* ``{{field}}`` / ``{{a.b}}`` / ``{{this}}`` interpolation (``{{{field}}}`` is
  accepted as an alias). Values are inserted verbatim unless the engine is
  created with ``escape=True``.
* ``{{#each items}}...{{else}}...{{/each}}`` iteration with ``@index``,
  ``@first`` and ``@last``. Names not found on the current item fall through
  to enclosing scopes, so ``{{currency}}`` works inside the loop.
* ``{{#if x}}``, ``{{#unless x}}`` with optional ``{{else}}``.
* ``{{money amount [currency]}}`` delegating to :func:`format_money`.
* ``{{! comment }}``.

A template that fails to parse or expand is not an error for the caller:
:func:`expand_template` returns :class:`Degraded` carrying the raw template
text, and :func:`render_document` lays that raw text out instead.
"""

import html
import logging
import re
from collections.abc import Mapping
from dataclasses import asdict, dataclass, replace
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from freelance_forge.app.core.errors import TemplateRenderError, TemplateSyntaxError
from freelance_forge.app.services.amounts import compute_line_total, sum_line_totals, to_decimal
from freelance_forge.app.services.money import format_money

logger = logging.getLogger(__name__)

DEFAULT_LEGAL_NOTE = (
    "Payment is due within 30 days of the invoice date. "
    "Please include the invoice number with your payment. Thank you for your business."
)

DEFAULT_TEMPLATE = """\
<header class="invoice-header">
  <div class="issuer">
    {{#if company_name}}<h2>{{company_name}}</h2>{{/if}}
    <p class="address">{{issuer_address}}</p>
  </div>
  <div class="meta">
    <h1>Invoice {{invoice_number}}</h1>
    <p>Invoice ID: {{invoice_id}}</p>
    <p>Date: {{date}}</p>
  </div>
</header>
<section class="bill-to">
  <h3>Bill to</h3>
  <p class="client-name">{{client_name}}</p>
  <p class="address">{{client_address}}</p>
</section>
<table class="items">
  <thead>
    <tr><th>Description</th><th class="num">Qty</th><th class="num">Unit price</th><th class="num">Total</th></tr>
  </thead>
  <tbody>
    {{#each items}}
    <tr class="item-row"><td>{{description}}</td><td class="num">{{quantity}}</td><td class="num">{{money unit_price}} {{currency}}</td><td class="num">{{money line_total}} {{currency}}</td></tr>
    {{/each}}
  </tbody>
</table>
<section class="totals">
  <p><span>Subtotal</span><span>{{money subtotal}} {{currency}}</span></p>
  <p class="grand-total"><span>Total</span><span>{{money total_amount}} {{currency}}</span></p>
</section>
<section class="notes">
  <h3>Notes</h3>
  <p>{{note}}</p>
</section>
"""

PAGE_STYLES = """\
  @page { size: A4; margin: 18mm 16mm; }
  body { font-family: Helvetica, Arial, sans-serif; font-size: 11pt; color: #1f2933; margin: 0; }
  h1 { font-size: 20pt; margin: 0 0 6px; }
  h2 { font-size: 13pt; margin: 0 0 4px; }
  h3 { font-size: 10pt; text-transform: uppercase; letter-spacing: 0.08em; color: #52606d; margin: 0 0 4px; }
  .address { white-space: pre-line; margin: 0; }
  .invoice-header { display: flex; justify-content: space-between; border-bottom: 2px solid #1f2933; padding-bottom: 12px; }
  .invoice-header .meta { text-align: right; }
  .invoice-header .meta p { margin: 2px 0; }
  .bill-to { margin: 18px 0; }
  .client-name { font-weight: bold; margin: 0 0 2px; }
  table.items { width: 100%; border-collapse: collapse; margin-top: 8px; }
  table.items th { text-align: left; border-bottom: 1px solid #9aa5b1; padding: 6px 4px; font-size: 9pt; text-transform: uppercase; }
  table.items td { border-bottom: 1px solid #e4e7eb; padding: 6px 4px; vertical-align: top; }
  table.items tr { page-break-inside: avoid; }
  .num { text-align: right; white-space: nowrap; }
  .totals { margin-top: 14px; margin-left: auto; width: 45%; }
  .totals p { display: flex; justify-content: space-between; margin: 3px 0; }
  .totals .grand-total { font-weight: bold; font-size: 13pt; border-top: 2px solid #1f2933; padding-top: 6px; }
  .notes { margin-top: 28px; font-size: 9pt; color: #52606d; }
"""

_HTML_OPEN_RE = re.compile(r"<html", re.IGNORECASE)
_TAG_RE = re.compile(r"\{\{\{(.*?)\}\}\}|\{\{(.*?)\}\}", re.DOTALL)
_ARG_RE = re.compile(r'"([^"]*)"|\'([^\']*)\'|(\S+)')
_NUMBER_RE = re.compile(r"^-?\d+(\.\d+)?$")
_BLOCK_HELPERS = ("each", "if", "unless")
_MISSING = object()


# --------------------------------------------------------------------------
# Render results


@dataclass(frozen=True)
class Rendered:
    html: str

    @property
    def degraded(self) -> bool:
        return False


@dataclass(frozen=True)
class Degraded:
    """Template expansion failed; ``html`` holds output built from the raw text."""

    raw_text: str
    cause: Exception
    html: str = ""

    @property
    def degraded(self) -> bool:
        return True


RenderOutcome = Union[Rendered, Degraded]


# --------------------------------------------------------------------------
# Render context


@dataclass(frozen=True)
class LineItemView:
    description: str
    quantity: Decimal
    unit_price: Decimal
    line_total: Decimal
    use_quantity: bool


@dataclass(frozen=True)
class RenderContext:
    invoice_id: Any
    invoice_number: str
    date: str
    client_name: str
    client_address: str
    issuer_address: str
    company_name: str
    currency: str
    total_amount: Decimal
    subtotal: Decimal
    note: str
    items: Tuple[LineItemView, ...]

    def as_template_data(self) -> Dict[str, Any]:
        return asdict(self)


def _format_date(value: Any) -> str:
    if value is None:
        return ""
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


def build_render_context(invoice: Any, line_items: Sequence[Any], *, note: str = DEFAULT_LEGAL_NOTE) -> RenderContext:
    """Flatten an invoice and its ordered line items into template values."""
    currency = (getattr(invoice, "currency", None) or "").upper()
    views = []
    for item in line_items:
        use_quantity = getattr(item, "use_quantity", True)
        use_quantity = True if use_quantity is None else bool(use_quantity)
        quantity = to_decimal(getattr(item, "quantity", None) or 0, "quantity")
        unit_price = to_decimal(getattr(item, "unit_price", None) or 0, "unit_price")
        line_total = getattr(item, "line_total", None)
        if line_total is None:
            line_total = compute_line_total(quantity, unit_price, use_quantity)
        views.append(
            LineItemView(
                description=getattr(item, "description", None) or "",
                quantity=quantity,
                unit_price=unit_price,
                line_total=to_decimal(line_total, "line_total"),
                use_quantity=use_quantity,
            )
        )

    # Recomputed from the rows so drift against the stored total stays visible
    subtotal = sum_line_totals(views)
    stored_total = getattr(invoice, "total_amount", None)
    company = getattr(invoice, "company", None)
    return RenderContext(
        invoice_id=getattr(invoice, "id", None),
        invoice_number=getattr(invoice, "invoice_number", None) or "",
        date=_format_date(getattr(invoice, "date", None)),
        client_name=getattr(invoice, "client_name", None) or "",
        client_address=getattr(invoice, "client_address", None) or "",
        issuer_address=getattr(invoice, "issuer_address", None) or "",
        company_name=getattr(company, "name", None) or "",
        currency=currency,
        total_amount=subtotal if stored_total is None else to_decimal(stored_total, "total_amount"),
        subtotal=subtotal,
        note=note,
        items=tuple(views),
    )


# --------------------------------------------------------------------------
# Template engine


@dataclass
class _Text:
    text: str


@dataclass
class _Value:
    path: str
    triple: bool = False


@dataclass
class _Literal:
    value: Any


@dataclass
class _HelperCall:
    name: str
    args: List[Any]


@dataclass
class _Block:
    name: str
    arg: Any
    body: List[Any]
    inverse: List[Any]
    in_else: bool = False


class _Scope:
    """Stack of (value, data-variables) frames, innermost last."""

    def __init__(self, frames: List[Tuple[Any, Dict[str, Any]]]):
        self.frames = frames

    def push(self, value: Any, data: Optional[Dict[str, Any]] = None) -> "_Scope":
        return _Scope(self.frames + [(value, data or {})])

    @staticmethod
    def _get(obj: Any, key: str) -> Any:
        if isinstance(obj, Mapping):
            return obj.get(key, _MISSING)
        if isinstance(obj, (str, bytes, int, float, Decimal, bool)) or obj is None:
            return _MISSING
        return getattr(obj, key, _MISSING)

    def _descend(self, value: Any, segments: List[str]) -> Any:
        for segment in segments:
            if value is _MISSING or value is None:
                return None
            value = self._get(value, segment)
        return None if value is _MISSING else value

    def lookup(self, path: str) -> Any:
        if path.startswith("@"):
            for _, data in reversed(self.frames):
                if path[1:] in data:
                    return data[path[1:]]
            return None

        depth = len(self.frames) - 1
        explicit = False
        while path.startswith("../"):
            path = path[3:]
            depth -= 1
            explicit = True
        if depth < 0:
            return None

        if path in ("this", "."):
            return self.frames[depth][0]
        if path.startswith("this.") or path.startswith("./"):
            segments = path.split(".", 1)[1].split(".") if path.startswith("this.") else path[2:].split(".")
            return self._descend(self.frames[depth][0], segments)

        segments = path.split(".")
        if explicit:
            return self._descend(self.frames[depth][0], segments)
        for value, _ in reversed(self.frames[: depth + 1]):
            head = self._get(value, segments[0])
            if head is not _MISSING:
                return self._descend(head, segments[1:])
        return None


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Decimal):
        if value == value.to_integral_value():
            return str(int(value))
        return format(value.normalize(), "f")
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else repr(value)
    if isinstance(value, (list, tuple)):
        return ",".join(_stringify(v) for v in value)
    return str(value)


def _truthy(value: Any) -> bool:
    if isinstance(value, (list, tuple, Mapping)):
        return len(value) > 0
    return bool(value)


def money_helper(scope: _Scope, amount: Any = None, currency: Any = None, *extra: Any) -> str:
    if extra:
        raise TemplateRenderError("money accepts at most two arguments")
    if amount is None or amount == "":
        raise TemplateRenderError("money requires an amount")
    if currency is None or currency == "":
        currency = scope.lookup("currency")
    try:
        value = amount if isinstance(amount, (int, float, Decimal)) else Decimal(str(amount).strip())
    except (InvalidOperation, ValueError) as exc:
        raise TemplateRenderError(f"money cannot format {amount!r}") from exc
    return format_money(value, currency)


class TemplateEngine:
    def __init__(self, *, escape: bool = False):
        self.escape = escape
        self.helpers: Dict[str, Callable[..., str]] = {"money": money_helper}

    # parsing

    def _parse_args(self, raw: str) -> List[Any]:
        args: List[Any] = []
        for match in _ARG_RE.finditer(raw):
            double, single, bare = match.groups()
            if double is not None or single is not None:
                args.append(_Literal(double if double is not None else single))
            elif _NUMBER_RE.match(bare):
                args.append(_Literal(Decimal(bare)))
            elif bare == "true":
                args.append(_Literal(True))
            elif bare == "false":
                args.append(_Literal(False))
            elif bare in ("null", "undefined"):
                args.append(_Literal(None))
            else:
                args.append(_Value(bare))
        return args

    def parse(self, source: str) -> List[Any]:
        root: List[Any] = []
        stack: List[_Block] = []

        def target() -> List[Any]:
            if not stack:
                return root
            block = stack[-1]
            return block.inverse if block.in_else else block.body

        position = 0
        for match in _TAG_RE.finditer(source):
            if match.start() > position:
                target().append(_Text(source[position : match.start()]))
            position = match.end()

            triple = match.group(1) is not None
            content = (match.group(1) if triple else match.group(2)).strip()
            if "{{" in content:
                raise TemplateSyntaxError(f"unclosed tag near offset {match.start()}")
            if not content:
                raise TemplateSyntaxError(f"empty tag at offset {match.start()}")
            if content.startswith("!"):
                continue

            if content.startswith("#"):
                parts = self._parse_args(content[1:])
                name = parts[0].path if parts and isinstance(parts[0], _Value) else ""
                if name not in _BLOCK_HELPERS:
                    raise TemplateSyntaxError(f"unknown block helper {name or content!r}")
                if len(parts) != 2:
                    raise TemplateSyntaxError(f"#{name} expects exactly one argument")
                block = _Block(name=name, arg=parts[1], body=[], inverse=[])
                target().append(block)
                stack.append(block)
                continue

            if content.startswith("/"):
                name = content[1:].strip()
                if not stack:
                    raise TemplateSyntaxError(f"unexpected closing tag {{{{/{name}}}}}")
                if stack[-1].name != name:
                    raise TemplateSyntaxError(f"{{{{/{name}}}}} does not close {{{{#{stack[-1].name}}}}}")
                stack.pop()
                continue

            if content == "else":
                if not stack or stack[-1].in_else:
                    raise TemplateSyntaxError("{{else}} outside of a block")
                stack[-1].in_else = True
                continue

            parts = self._parse_args(content)
            head = parts[0]
            if isinstance(head, _Value) and head.path in self.helpers:
                target().append(_HelperCall(name=head.path, args=parts[1:]))
            elif len(parts) > 1:
                raise TemplateSyntaxError(f"unknown helper {content.split()[0]!r}")
            elif isinstance(head, _Literal):
                target().append(_Text(_stringify(head.value)))
            else:
                target().append(_Value(head.path, triple=triple))

        tail = source[position:]
        if "{{" in tail:
            raise TemplateSyntaxError("unclosed tag at end of template")
        if tail:
            target().append(_Text(tail))
        if stack:
            raise TemplateSyntaxError(f"unclosed block {{{{#{stack[-1].name}}}}}")
        return root

    # evaluation

    def _arg_value(self, arg: Any, scope: _Scope) -> Any:
        if isinstance(arg, _Literal):
            return arg.value
        return scope.lookup(arg.path)

    def _render_nodes(self, nodes: List[Any], scope: _Scope, out: List[str]) -> None:
        for node in nodes:
            if isinstance(node, _Text):
                out.append(node.text)
            elif isinstance(node, _Value):
                text = _stringify(scope.lookup(node.path))
                out.append(html.escape(text) if self.escape and not node.triple else text)
            elif isinstance(node, _HelperCall):
                args = [self._arg_value(arg, scope) for arg in node.args]
                try:
                    out.append(_stringify(self.helpers[node.name](scope, *args)))
                except TemplateRenderError:
                    raise
                except Exception as exc:
                    raise TemplateRenderError(f"helper {node.name!r} failed: {exc}") from exc
            elif isinstance(node, _Block):
                self._render_block(node, scope, out)

    def _render_block(self, block: _Block, scope: _Scope, out: List[str]) -> None:
        value = self._arg_value(block.arg, scope)
        if block.name == "if":
            self._render_nodes(block.body if _truthy(value) else block.inverse, scope, out)
        elif block.name == "unless":
            self._render_nodes(block.inverse if _truthy(value) else block.body, scope, out)
        elif block.name == "each":
            if not _truthy(value):
                self._render_nodes(block.inverse, scope, out)
                return
            if isinstance(value, Mapping):
                entries = [(key, item) for key, item in value.items()]
            elif isinstance(value, (list, tuple)):
                entries = list(enumerate(value))
            else:
                raise TemplateRenderError("#each expects a list")
            last = len(entries) - 1
            for index, (key, item) in enumerate(entries):
                data = {"index": index, "key": key, "first": index == 0, "last": index == last}
                self._render_nodes(block.body, scope.push(item, data), out)

    def render(self, source: str, data: Mapping[str, Any]) -> str:
        nodes = self.parse(source)
        out: List[str] = []
        self._render_nodes(nodes, _Scope([(data, {})]), out)
        return "".join(out)


def expand_template(source: str, data: Mapping[str, Any], *, escape: bool = False) -> RenderOutcome:
    try:
        return Rendered(html=TemplateEngine(escape=escape).render(source, data))
    except (TemplateSyntaxError, TemplateRenderError) as exc:
        return Degraded(raw_text=source, cause=exc, html=source)


# --------------------------------------------------------------------------
# Document layout


def wrap_in_page_shell(fragment: str, *, title: str = "Invoice") -> str:
    return (
        "<!doctype html>\n"
        '<html lang="en">\n'
        "<head>\n"
        '<meta charset="utf-8">\n'
        f"<title>{html.escape(title)}</title>\n"
        "<style>\n"
        f"{PAGE_STYLES}"
        "</style>\n"
        "</head>\n"
        "<body>\n"
        '<main class="invoice">\n'
        f"{fragment}"
        "</main>\n"
        "</body>\n"
        "</html>\n"
    )


def is_complete_document(markup: str) -> bool:
    return _HTML_OPEN_RE.search(markup) is not None


def render_document(template_html: str, is_custom: bool, context: RenderContext, *, escape: bool = False) -> RenderOutcome:
    """Expand a template for one invoice and lay it out as a full HTML document.

    The default template always goes into the page shell. A custom template's
    output is used verbatim when it already contains an ``<html`` tag and is
    wrapped in the shell otherwise.
    """
    outcome = expand_template(template_html, context.as_template_data(), escape=escape)
    body = outcome.html
    if is_custom and is_complete_document(body):
        document = body
    else:
        document = wrap_in_page_shell(body, title=f"Invoice {context.invoice_number}".strip())

    if isinstance(outcome, Degraded):
        logger.warning(
            "Template expansion failed for invoice %s; emitting raw template text: %s",
            context.invoice_id,
            outcome.cause,
            extra={"invoice_id": context.invoice_id},
        )
        return replace(outcome, html=document)
    return Rendered(html=document)
