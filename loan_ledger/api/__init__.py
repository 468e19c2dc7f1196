"""
Loan Ledger API Application Factory
"""

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from .accounts import router as accounts_router
from .dependencies import LoanLedgerSystem
from .loans import router as loans_router


def create_app(system: Optional[LoanLedgerSystem] = None) -> FastAPI:
    """Create and configure the FastAPI application"""
    app = FastAPI(
        title="Loan Ledger API",
        description="Loan amortization and payment-history balance reconciliation",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )
    app.state.system = system or LoanLedgerSystem()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(loans_router, prefix="/loans", tags=["Loans"])
    app.include_router(accounts_router, prefix="/accounts", tags=["Accounts"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "loan_ledger_api",
            "version": __version__
        }

    return app
