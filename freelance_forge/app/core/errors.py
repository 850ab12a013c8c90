"""Domain exceptions raised by the invoicing services.

The HTTP layer maps each class to a status code in ``main.py``; services never
raise ``HTTPException`` themselves.
"""


class InvoicingError(Exception):
    """Base class for invoicing failures."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvoiceValidationError(InvoicingError):
    """Client supplied data that cannot be turned into an invoice."""

    status_code = 400


class TemplateSyntaxError(InvoicingError):
    """A template string could not be parsed."""

    status_code = 422


class TemplateRenderError(InvoicingError):
    """A parsed template failed while being expanded against a context."""

    status_code = 422


class PdfBackendError(InvoicingError):
    """The PDF backend failed to start, crashed, or produced no PDF."""

    status_code = 502

    def __init__(self, message: str, diagnostic: str = ""):
        super().__init__(message)
        self.diagnostic = diagnostic


class PdfBackendTimeoutError(PdfBackendError):
    status_code = 504
