from freelance_forge.app.db.base_class import Base

# Import models to register metadata for Base.metadata.create_all in tests
from freelance_forge.app.models.company import Company  # noqa: F401
from freelance_forge.app.models.user import User  # noqa: F401
from freelance_forge.app.models.invoice_template import InvoiceTemplate  # noqa: F401
from freelance_forge.app.models.invoice import Invoice  # noqa: F401
from freelance_forge.app.models.invoice_line_item import InvoiceLineItem  # noqa: F401
