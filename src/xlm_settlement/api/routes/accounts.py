"""Account, settlement and message endpoints called by the connector."""

import json
import logging
from typing import Annotated

from fastapi import APIRouter, Header, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse

from xlm_settlement.api.dependencies import AccountId, Engine, Store
from xlm_settlement.api.schemas import AccountCreate, AccountResponse, ErrorResponse, Quantity
from xlm_settlement.connector import from_base_units
from xlm_settlement.engine import TokenCollisionError, UnknownMessageTypeError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/accounts", tags=["accounts"])


@router.post(
    "",
    response_model=AccountResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_account(store: Store, payload: AccountCreate) -> AccountResponse:
    """Register a peer account."""
    store.create(payload.id)
    return AccountResponse(id=payload.id)


@router.delete(
    "/{account_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
)
async def delete_account(store: Store, account_id: AccountId) -> Response:
    """Forget a peer account and its queued balance."""
    store.delete(account_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{account_id}/settlements",
    response_model=Quantity,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}},
)
async def request_settlement(
    engine: Engine,
    store: Store,
    account_id: AccountId,
    payload: Quantity,
    idempotency_key: Annotated[str, Header(alias="Idempotency-Key", min_length=1)],
) -> Quantity:
    """Queue an amount owed to the peer and settle as much as possible.

    Whatever the engine does not settle stays queued and is included in
    the next settlement for the account.
    """
    previous = store.seen(account_id, idempotency_key)
    if previous is not None:
        return previous
    store.remember(account_id, idempotency_key, payload)

    amount = from_base_units(payload.amount, payload.scale)
    async with store.lock(account_id):
        queued = store.enqueue(account_id, amount)
        settled = await engine.settle(account_id, queued)
        remaining = store.release(account_id, settled)

    logger.info(
        "Settlement request: account=%s requested=%s settled=%s queued=%s",
        account_id,
        amount,
        settled,
        remaining,
    )
    return payload


@router.post(
    "/{account_id}/messages",
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def receive_message(request: Request, engine: Engine, account_id: AccountId) -> JSONResponse:
    """Answer a message from the peer's settlement engine."""
    body = await request.body()
    try:
        message = json.loads(body)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Message body must be JSON",
        )

    try:
        reply = await engine.handle_message(account_id, message)
    except UnknownMessageTypeError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except TokenCollisionError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))

    return JSONResponse(content=reply)
