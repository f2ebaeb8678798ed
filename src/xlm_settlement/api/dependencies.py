"""FastAPI dependencies for dependency injection."""

from typing import Annotated

from fastapi import Depends, HTTPException, Path, Request, status

from xlm_settlement.api.accounts import AccountStore
from xlm_settlement.engine import XlmSettlementEngine
from xlm_settlement.metrics import SettlementMetrics


def get_engine(request: Request) -> XlmSettlementEngine:
    """Get the settlement engine bound to the app."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Settlement engine is not connected",
        )
    return engine


def get_store(request: Request) -> AccountStore:
    """Get the account store bound to the app."""
    return request.app.state.store


def get_metrics(request: Request) -> SettlementMetrics:
    """Get the metrics collector bound to the app."""
    return request.app.state.metrics


def get_account_id(
    store: Annotated[AccountStore, Depends(get_store)],
    account_id: Annotated[str, Path(min_length=1)],
) -> str:
    """Resolve a registered account from the path."""
    if not store.exists(account_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Account {account_id} not found",
        )
    return account_id


# Type aliases for cleaner dependency injection
Engine = Annotated[XlmSettlementEngine, Depends(get_engine)]
Store = Annotated[AccountStore, Depends(get_store)]
Metrics = Annotated[SettlementMetrics, Depends(get_metrics)]
AccountId = Annotated[str, Depends(get_account_id)]
