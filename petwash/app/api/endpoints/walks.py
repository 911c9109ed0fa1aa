"""
Walk-My-Pet API Endpoints.

Owners book and follow walks; walkers execute them and stream GPS,
health, photo and emergency updates. Every mutation drops the cached
snapshot and, where the tracking view listens for it, pushes an event on
the walk's realtime channel.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Body, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from petwash.app.db.session import get_db
from petwash.app.models.enums import UserRole, WalkStatus
from petwash.app.models.pet import Pet
from petwash.app.schemas.realtime import WalkEvent
from petwash.app.schemas.walk import (
    WalkSnapshot, WalkSummary, PetCreate, PetResponse, WalkBookingRequest,
    WalkStartRequest, WalkCompleteRequest, GeoSample, HealthUpdate,
    PhotoUpload, EmergencyRequest, EmergencyAlertInfo
)
from petwash.app.core.dependencies import get_current_user
from petwash.app.core.guards import require_role, WalkParticipantGuard
from petwash.app.services.audit import log_event, AuditAction
from petwash.app.services.cache import CacheService, snapshot_key
from petwash.app.services.realtime_hub import RealtimeHub, get_realtime_hub
from petwash.app.services.walk_service import WalkService, ensure_utc

router = APIRouter(prefix="/walk-my-pet", tags=["Walk My Pet"])
participant_guard = WalkParticipantGuard()


async def _commit_walk_change(
    db: AsyncSession,
    hub: RealtimeHub,
    walk_id: int,
    event: Optional[WalkEvent] = None
):
    """Commit, drop the cached snapshot, then notify subscribers."""
    await db.commit()
    await CacheService.delete(snapshot_key(walk_id))
    if event is not None:
        await hub.publish_walk_event(event)


def _summary(walk) -> WalkSummary:
    return WalkSummary(
        id=walk.id,
        status=walk.status,
        pet_id=walk.pet_id,
        walker_id=walk.walker_id,
        owner_id=walk.owner_id,
        start_time=ensure_utc(walk.start_time),
        end_time=ensure_utc(walk.end_time),
        duration=walk.duration_minutes,
        distance=walk.distance_meters,
    )


# --- Pets ---

@router.post("/pets", response_model=PetResponse, status_code=status.HTTP_201_CREATED)
async def register_pet(
    pet_data: PetCreate,
    current_user: dict = Depends(require_role([UserRole.OWNER])),
    db: AsyncSession = Depends(get_db)
):
    """Register a pet for the current owner."""
    pet = Pet(
        owner_id=current_user["user_id"],
        name=pet_data.name,
        breed=pet_data.breed,
        photo_url=pet_data.photo_url,
    )
    db.add(pet)
    await db.flush()
    await log_event(
        db=db,
        action=AuditAction.PET_REGISTERED,
        actor_id=current_user["user_id"],
        actor_username=current_user.get("sub"),
        metadata={"pet_id": pet.id},
        commit=False
    )
    await db.commit()
    await db.refresh(pet)
    return PetResponse.model_validate(pet)


# --- Walks ---

@router.post("/walks", response_model=WalkSummary, status_code=status.HTTP_201_CREATED)
async def book_walk(
    booking: WalkBookingRequest,
    current_user: dict = Depends(require_role([UserRole.OWNER])),
    db: AsyncSession = Depends(get_db)
):
    """Book a walk for one of the owner's pets. The walk starts as pending."""
    walk = await WalkService.book_walk(
        db,
        owner_id=current_user["user_id"],
        pet_id=booking.pet_id,
        walker_id=booking.walker_id,
        pickup_lat=booking.pickup_lat,
        pickup_lon=booking.pickup_lon,
    )
    await log_event(
        db=db,
        action=AuditAction.WALK_BOOKED,
        actor_id=current_user["user_id"],
        actor_username=current_user.get("sub"),
        target_user_id=walk.walker_id,
        metadata={"walk_id": walk.id, "pet_id": walk.pet_id},
        commit=False
    )
    await db.commit()
    await db.refresh(walk)
    return _summary(walk)


@router.get("/walks", response_model=List[WalkSummary])
async def list_walks(
    walk_status: Optional[WalkStatus] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """List the caller's walks (as owner or walker; admins see all)."""
    walks = await WalkService.list_walks(db, current_user, walk_status, limit)
    return [_summary(w) for w in walks]


@router.get("/walks/{walk_id}", response_model=WalkSnapshot)
async def get_walk(
    walk_id: int = Path(..., description="Walk ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Full walk snapshot, polled by tracking views every 5 seconds.

    Served from a short-lived cache; access is checked on every call.
    """
    walk = await WalkService.get_walk(db, walk_id)
    participant_guard.enforce(walk, current_user)

    cached = await CacheService.get(snapshot_key(walk_id))
    if cached is not None:
        return WalkSnapshot.model_validate(cached)

    snapshot = await WalkService.build_snapshot(db, walk)
    await CacheService.set(snapshot_key(walk_id), snapshot.model_dump(mode="json", by_alias=True))
    return snapshot


@router.post("/walks/{walk_id}/start", response_model=WalkSummary)
async def start_walk(
    walk_id: int = Path(..., description="Walk ID"),
    body: Optional[WalkStartRequest] = Body(None),
    current_user: dict = Depends(require_role([UserRole.WALKER])),
    db: AsyncSession = Depends(get_db),
    hub: RealtimeHub = Depends(get_realtime_hub)
):
    """Walker checks in: pending -> active, optional check-in location."""
    walk = await WalkService.get_walk(db, walk_id)
    participant_guard.enforce(walk, current_user, walker_only=True)

    location = body.location if body else None
    await WalkService.start_walk(db, walk, location)
    await log_event(
        db=db,
        action=AuditAction.WALK_STARTED,
        actor_id=current_user["user_id"],
        actor_username=current_user.get("sub"),
        target_user_id=walk.owner_id,
        metadata={"walk_id": walk.id},
        commit=False
    )
    event = None
    if location is not None:
        event = WalkEvent(type="gps_update", walk_id=walk.id, location=location)
    await _commit_walk_change(db, hub, walk.id, event)
    await db.refresh(walk)
    return _summary(walk)


@router.post("/walks/{walk_id}/gps")
async def record_gps(
    walk_id: int = Path(..., description="Walk ID"),
    sample: GeoSample = Body(...),
    current_user: dict = Depends(require_role([UserRole.WALKER])),
    db: AsyncSession = Depends(get_db),
    hub: RealtimeHub = Depends(get_realtime_hub)
):
    """
    Record one GPS sample (walker only, active walks only).

    Not audited individually; the trail itself is the record.
    """
    walk = await WalkService.get_walk(db, walk_id)
    participant_guard.enforce(walk, current_user, walker_only=True)

    location = await WalkService.record_location(db, walk, sample)
    distance = walk.distance_meters
    location_id = location.id
    await _commit_walk_change(
        db, hub, walk_id,
        WalkEvent(type="gps_update", walk_id=walk_id, location=sample)
    )
    return {
        "walkId": walk_id,
        "locationId": location_id,
        "distance": distance,
        "recorded": True,
    }


@router.post("/walks/{walk_id}/health", response_model=WalkSummary)
async def update_health(
    walk_id: int = Path(..., description="Walk ID"),
    update: HealthUpdate = Body(...),
    current_user: dict = Depends(require_role([UserRole.WALKER])),
    db: AsyncSession = Depends(get_db),
    hub: RealtimeHub = Depends(get_realtime_hub)
):
    """Overwrite the pet's health snapshot."""
    walk = await WalkService.get_walk(db, walk_id)
    participant_guard.enforce(walk, current_user, walker_only=True)

    await WalkService.update_health(db, walk, update)
    await _commit_walk_change(db, hub, walk_id, WalkEvent(type="health_update", walk_id=walk_id))
    await db.refresh(walk)
    return _summary(walk)


@router.post("/walks/{walk_id}/photos", status_code=status.HTTP_201_CREATED)
async def upload_photo(
    walk_id: int = Path(..., description="Walk ID"),
    photo: PhotoUpload = Body(...),
    current_user: dict = Depends(require_role([UserRole.WALKER])),
    db: AsyncSession = Depends(get_db),
    hub: RealtimeHub = Depends(get_realtime_hub)
):
    """Attach a photo reference to an active walk."""
    walk = await WalkService.get_walk(db, walk_id)
    participant_guard.enforce(walk, current_user, walker_only=True)

    created = await WalkService.add_photo(db, walk, photo.url)
    photo_id = created.id
    await _commit_walk_change(db, hub, walk_id, WalkEvent(type="photo_uploaded", walk_id=walk_id))
    return {"walkId": walk_id, "photoId": photo_id, "url": photo.url}


@router.post("/walks/{walk_id}/emergency", response_model=EmergencyAlertInfo, status_code=status.HTTP_201_CREATED)
async def raise_emergency(
    walk_id: int = Path(..., description="Walk ID"),
    request: EmergencyRequest = Body(...),
    current_user: dict = Depends(require_role([UserRole.WALKER, UserRole.OWNER])),
    db: AsyncSession = Depends(get_db),
    hub: RealtimeHub = Depends(get_realtime_hub)
):
    """Raise an emergency alert. Subscribers receive it with its message."""
    walk = await WalkService.get_walk(db, walk_id)
    participant_guard.enforce(walk, current_user)

    alert = await WalkService.raise_emergency(db, walk, current_user["user_id"], request.message)
    await log_event(
        db=db,
        action=AuditAction.EMERGENCY_RAISED,
        actor_id=current_user["user_id"],
        actor_username=current_user.get("sub"),
        target_user_id=walk.owner_id,
        metadata={"walk_id": walk.id, "alert_id": alert.id},
        commit=False
    )
    response = EmergencyAlertInfo(
        id=alert.id,
        timestamp=ensure_utc(alert.created_at),
        message=alert.message,
        resolved=alert.resolved,
    )
    await _commit_walk_change(
        db, hub, walk_id,
        WalkEvent(type="emergency_alert", walk_id=walk_id, message=request.message)
    )
    return response


@router.patch("/walks/{walk_id}/alerts/{alert_id}/resolve", response_model=EmergencyAlertInfo)
async def resolve_alert(
    walk_id: int = Path(..., description="Walk ID"),
    alert_id: int = Path(..., description="Alert ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    hub: RealtimeHub = Depends(get_realtime_hub)
):
    """Mark an emergency alert as resolved."""
    walk = await WalkService.get_walk(db, walk_id)
    participant_guard.enforce(walk, current_user)

    alert = await WalkService.resolve_alert(db, walk, alert_id)
    await log_event(
        db=db,
        action=AuditAction.EMERGENCY_RESOLVED,
        actor_id=current_user["user_id"],
        actor_username=current_user.get("sub"),
        metadata={"walk_id": walk.id, "alert_id": alert.id},
        commit=False
    )
    response = EmergencyAlertInfo(
        id=alert.id,
        timestamp=ensure_utc(alert.created_at),
        message=alert.message,
        resolved=alert.resolved,
    )
    await _commit_walk_change(db, hub, walk_id)
    return response


@router.post("/walks/{walk_id}/complete", response_model=WalkSummary)
async def complete_walk(
    walk_id: int = Path(..., description="Walk ID"),
    body: Optional[WalkCompleteRequest] = Body(None),
    current_user: dict = Depends(require_role([UserRole.WALKER])),
    db: AsyncSession = Depends(get_db),
    hub: RealtimeHub = Depends(get_realtime_hub)
):
    """Walker checks out: active -> completed with final duration and distance."""
    walk = await WalkService.get_walk(db, walk_id)
    participant_guard.enforce(walk, current_user, walker_only=True)

    await WalkService.complete_walk(db, walk, body.location if body else None)
    await log_event(
        db=db,
        action=AuditAction.WALK_COMPLETED,
        actor_id=current_user["user_id"],
        actor_username=current_user.get("sub"),
        target_user_id=walk.owner_id,
        metadata={
            "walk_id": walk.id,
            "duration_minutes": walk.duration_minutes,
            "distance_meters": walk.distance_meters
        },
        commit=False
    )
    await _commit_walk_change(db, hub, walk_id)
    await db.refresh(walk)
    return _summary(walk)


@router.post("/walks/{walk_id}/cancel", response_model=WalkSummary)
async def cancel_walk(
    walk_id: int = Path(..., description="Walk ID"),
    current_user: dict = Depends(require_role([UserRole.OWNER, UserRole.WALKER])),
    db: AsyncSession = Depends(get_db),
    hub: RealtimeHub = Depends(get_realtime_hub)
):
    """Cancel a pending or active walk (owner or assigned walker)."""
    walk = await WalkService.get_walk(db, walk_id)
    participant_guard.enforce(walk, current_user)

    await WalkService.cancel_walk(db, walk)
    await log_event(
        db=db,
        action=AuditAction.WALK_CANCELLED,
        actor_id=current_user["user_id"],
        actor_username=current_user.get("sub"),
        metadata={"walk_id": walk.id},
        commit=False
    )
    await _commit_walk_change(db, hub, walk_id)
    await db.refresh(walk)
    return _summary(walk)
