"""Physical Inventory API endpoints"""

from fastapi import APIRouter, Depends, Query, Body, status
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date

from stockrecon.api import deps
from stockrecon.core.security import Actor
from stockrecon.services.physical_inventory import PhysicalInventoryService
from stockrecon.schemas.common import PaginatedResponse
from stockrecon.schemas.physical_inventory import (
    PhysicalInventoryCreate, PhysicalInventoryUpdate, PhysicalInventoryResponse,
    PhysicalInventorySummary, PhysicalInventoryStats, ApproveRequest, ReasonRequest,
    AcceptVarianceRequest
)

router = APIRouter()


def get_service(
    db: Session = Depends(deps.get_db),
    actor: Actor = Depends(deps.get_current_actor),
) -> PhysicalInventoryService:
    return PhysicalInventoryService(db, actor)


@router.post("", response_model=PhysicalInventoryResponse, status_code=status.HTTP_201_CREATED)
async def create_physical_inventory(
    payload: PhysicalInventoryCreate,
    service: PhysicalInventoryService = Depends(get_service),
):
    """
    Create a draft physical inventory.

    Line valuations are computed from the supplied quantities and are
    advisory until approval.
    """
    document = service.create_draft(payload.model_dump())
    return PhysicalInventoryResponse.model_validate(document)


@router.get("", response_model=PaginatedResponse[PhysicalInventorySummary])
async def list_physical_inventories(
    status_filter: Optional[str] = Query(None, alias="status", description="Status or 'all'"),
    store_id: Optional[int] = Query(None, description="Filter by store"),
    start_date: Optional[date] = Query(None, description="Inventory date from"),
    end_date: Optional[date] = Query(None, description="Inventory date to"),
    search: Optional[str] = Query(None, description="Reference number or notes"),
    sort_by: str = Query("created_at"),
    sort_order: str = Query("desc", pattern="^(asc|desc|ASC|DESC)$"),
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    service: PhysicalInventoryService = Depends(get_service),
):
    """List physical inventories with filters and pagination."""
    result = service.list(
        status=status_filter,
        store_id=store_id,
        start_date=start_date,
        end_date=end_date,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        page_size=page_size
    )
    return PaginatedResponse[PhysicalInventorySummary](
        items=[PhysicalInventorySummary.model_validate(item) for item in result["items"]],
        total=result["total"],
        page=result["page"],
        page_size=result["page_size"],
        total_pages=result["total_pages"]
    )


@router.get("/stats", response_model=PhysicalInventoryStats)
async def physical_inventory_stats(
    service: PhysicalInventoryService = Depends(get_service),
):
    """Document counts by status."""
    return PhysicalInventoryStats(**service.get_stats())


@router.get("/{inventory_id}", response_model=PhysicalInventoryResponse)
async def get_physical_inventory(
    inventory_id: int,
    service: PhysicalInventoryService = Depends(get_service),
):
    return PhysicalInventoryResponse.model_validate(service.get_by_id(inventory_id))


@router.put("/{inventory_id}", response_model=PhysicalInventoryResponse)
async def update_physical_inventory(
    inventory_id: int,
    payload: PhysicalInventoryUpdate,
    service: PhysicalInventoryService = Depends(get_service),
):
    """Update a draft or returned document, replacing its lines when items are sent."""
    document = service.update(inventory_id, payload.model_dump(exclude_unset=True))
    return PhysicalInventoryResponse.model_validate(document)


@router.delete("/{inventory_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_physical_inventory(
    inventory_id: int,
    service: PhysicalInventoryService = Depends(get_service),
):
    """Delete a draft document."""
    service.delete(inventory_id)


@router.post("/{inventory_id}/submit", response_model=PhysicalInventoryResponse)
async def submit_physical_inventory(
    inventory_id: int,
    service: PhysicalInventoryService = Depends(get_service),
):
    return PhysicalInventoryResponse.model_validate(service.submit(inventory_id))


@router.post("/{inventory_id}/approve", response_model=PhysicalInventoryResponse)
async def approve_physical_inventory(
    inventory_id: int,
    payload: Optional[ApproveRequest] = Body(None),
    service: PhysicalInventoryService = Depends(get_service),
):
    """
    Approve a submitted document.

    Revalues every line against live stock, overwrites stock with the
    count and posts the variances, all or nothing.
    """
    document = service.approve(inventory_id, notes=payload.notes if payload else None)
    return PhysicalInventoryResponse.model_validate(document)


@router.post("/{inventory_id}/reject", response_model=PhysicalInventoryResponse)
async def reject_physical_inventory(
    inventory_id: int,
    payload: ReasonRequest,
    service: PhysicalInventoryService = Depends(get_service),
):
    return PhysicalInventoryResponse.model_validate(service.reject(inventory_id, payload.reason))


@router.post("/{inventory_id}/return", response_model=PhysicalInventoryResponse)
async def return_physical_inventory(
    inventory_id: int,
    payload: ReasonRequest,
    service: PhysicalInventoryService = Depends(get_service),
):
    """Send a submitted document back for correction."""
    document = service.return_for_correction(inventory_id, payload.reason)
    return PhysicalInventoryResponse.model_validate(document)


@router.post("/{inventory_id}/accept-variance", response_model=PhysicalInventoryResponse)
async def accept_physical_inventory_variance(
    inventory_id: int,
    payload: Optional[AcceptVarianceRequest] = Body(None),
    service: PhysicalInventoryService = Depends(get_service),
):
    document = service.accept_variance(inventory_id, payload.model_dump() if payload else {})
    return PhysicalInventoryResponse.model_validate(document)
