# Freelance Forge backend entrypoint: FastAPI app, routers and error mapping.

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from freelance_forge.app.api import companies
from freelance_forge.app.api import invoice_templates
from freelance_forge.app.api import invoices
from freelance_forge.app.api import login
from freelance_forge.app.api import profile
from freelance_forge.app.api import register
from freelance_forge.app.core.errors import InvoicingError, PdfBackendError
from freelance_forge.app.core.logging import setup_logging
from freelance_forge.app.core.settings import get_settings
from freelance_forge.app.db.base import Base
from freelance_forge.app.db.session import engine

settings = get_settings()
setup_logging(settings.log_level, settings.log_format)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name, version=settings.api_version)

origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(register.router)
app.include_router(login.router)
app.include_router(profile.router)
app.include_router(companies.router)
app.include_router(invoice_templates.router)
app.include_router(invoices.router)


@app.exception_handler(InvoicingError)
async def invoicing_error_handler(request: Request, exc: InvoicingError):
    if isinstance(exc, PdfBackendError):
        logger.error("PDF rendering failed for %s: %s", request.url.path, exc.message)
        content = {"detail": exc.message, "diagnostic": exc.diagnostic}
    else:
        content = {"detail": exc.message}
    return JSONResponse(status_code=exc.status_code, content=content)


@app.get("/")
def read_root():
    return {"app": "Freelance Forge backend", "status": "ok"}


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.on_event("startup")
def create_tables():
    Base.metadata.create_all(bind=engine)
