"""
Hub API Endpoints.

Admin management of the district/area hub tree plus the hub-manager queue
view.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from courier_backend.app.core.dependencies import get_current_actor, actor_name
from courier_backend.app.db.session import get_db
from courier_backend.app.models.entity_enums import HubType, HubStatus
from courier_backend.app.schemas.hub import HubUpsert, HubResponse, HubListResponse
from courier_backend.app.schemas.parcel import HubQueuesResponse, ParcelResponse
from courier_backend.app.services import entities
from courier_backend.app.services.routing import hub_queues

router = APIRouter(prefix="/hubs", tags=["Hubs"])


@router.get("", response_model=HubListResponse)
async def list_hubs(
    hub_type: Optional[HubType] = Query(None, description="district or area"),
    hub_status: Optional[HubStatus] = Query(None, alias="status"),
    parent_hub_id: Optional[str] = Query(None),
    search: Optional[str] = Query(None, description="Match on id or name"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    db: AsyncSession = Depends(get_db)
):
    hubs, total = await entities.list_hubs(
        db, hub_type=hub_type, status=hub_status, parent_hub_id=parent_hub_id,
        search=search, page=page, page_size=page_size,
    )
    return HubListResponse(
        hubs=[HubResponse.model_validate(h) for h in hubs],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/{hub_id}", response_model=HubResponse)
async def get_hub(hub_id: str, db: AsyncSession = Depends(get_db)):
    return HubResponse.model_validate(await entities.get_hub(db, hub_id))


@router.put("/{hub_id}", response_model=HubResponse)
async def upsert_hub(
    hub_id: str,
    hub_data: HubUpsert,
    actor: dict = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """
    Create or replace a hub.

    Area hubs must name an existing district hub as parent; district hubs
    have no parent.
    """
    hub = await entities.upsert_hub(db, hub_id, hub_data, actor_name(actor))
    return HubResponse.model_validate(hub)


@router.post("/{hub_id}/deactivate", response_model=HubResponse)
async def deactivate_hub(
    hub_id: str,
    actor: dict = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """Soft delete. Parcels already routed through the hub keep their references."""
    hub = await entities.deactivate_hub(db, hub_id, actor_name(actor))
    return HubResponse.model_validate(hub)


@router.delete("/{hub_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_hub(
    hub_id: str,
    actor: dict = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """Hard delete, refused while anything still references the hub."""
    await entities.delete_hub(db, hub_id, actor_name(actor))


@router.get("/{hub_id}/queues", response_model=HubQueuesResponse)
async def get_hub_queues(hub_id: str, db: AsyncSession = Depends(get_db)):
    """Incoming / inventory / outgoing parcels for the hub-manager dashboard."""
    queues = await hub_queues(db, hub_id)
    return HubQueuesResponse(
        hub_id=hub_id,
        **{name: [ParcelResponse.model_validate(p) for p in parcels] for name, parcels in queues.items()}
    )
