import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .routers import (
    audit,
    chart_of_accounts,
    dimensions,
    documents,
    journal_entries,
    parties,
    payments,
    periods,
    reports,
    tax,
)

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title=settings.project_name)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(chart_of_accounts.router)
app.include_router(dimensions.router)
app.include_router(tax.router)
app.include_router(journal_entries.router)
app.include_router(periods.router)
app.include_router(parties.router)
app.include_router(documents.invoices_router)
app.include_router(documents.bills_router)
app.include_router(documents.credit_notes_router)
app.include_router(documents.vendor_credits_router)
app.include_router(payments.router)
app.include_router(reports.router)
app.include_router(audit.router)


@app.get("/")
def root():
    return {"status": "ok"}
