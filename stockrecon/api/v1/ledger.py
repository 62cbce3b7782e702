"""General Ledger posting group API endpoints"""

from fastapi import APIRouter, Depends, Body, status
from sqlalchemy.orm import Session
from typing import Optional

from stockrecon.api import deps
from stockrecon.core.security import Actor
from stockrecon.services.ledger_posting import LedgerPostingService
from stockrecon.schemas.ledger import (
    LedgerEntryResponse, PostingGroupResponse, ReversalRequest, ReversalResponse
)

router = APIRouter()


def get_service(
    db: Session = Depends(deps.get_db),
    actor: Actor = Depends(deps.get_current_actor),
) -> LedgerPostingService:
    return LedgerPostingService(db, actor)


@router.get("/posting-groups/{group_id}", response_model=PostingGroupResponse)
async def get_posting_group(
    group_id: str,
    service: LedgerPostingService = Depends(get_service),
):
    """Entries and balance of one posting group."""
    totals = service.get_group_totals(group_id)
    entries = service.get_group_entries(group_id)
    return PostingGroupResponse(
        posting_group_id=group_id,
        debit_total=totals.debit_total,
        credit_total=totals.credit_total,
        balanced=totals.balanced,
        entries=[LedgerEntryResponse.model_validate(entry) for entry in entries]
    )


@router.post(
    "/posting-groups/{group_id}/reverse",
    response_model=ReversalResponse,
    status_code=status.HTTP_201_CREATED
)
async def reverse_posting_group(
    group_id: str,
    payload: Optional[ReversalRequest] = Body(None),
    service: LedgerPostingService = Depends(get_service),
):
    """
    Reverse a posting group.

    Writes mirror entries with flipped natures under a new group; the
    original entries are left untouched.
    """
    payload = payload or ReversalRequest()
    reversal_group_id = service.reverse_posting_group(
        group_id,
        reason=payload.reason,
        reference_number=payload.reference_number
    )
    return ReversalResponse(original_group_id=group_id, reversal_group_id=reversal_group_id)
