"""
Walk session service.

Owns the walk lifecycle (pending -> active -> completed, or cancelled),
the GPS breadcrumb trail and the server-side aggregates (duration,
distance), and assembles the snapshot served to tracking views.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession

from petwash.app.core.config import settings
from petwash.app.core.exceptions import (
    ResourceNotFoundError, InsufficientPermissionsError, WalkNotFoundError,
    WalkStateError, StaleLocationError, CheckInTooFarError
)
from petwash.app.models.enums import UserRole, WalkStatus
from petwash.app.models.pet import Pet
from petwash.app.models.user import User
from petwash.app.models.walk_location import WalkLocation
from petwash.app.models.walk_media import WalkPhoto, WalkAlert
from petwash.app.models.walk_session import WalkSession
from petwash.app.schemas.walk import (
    GeoSample, WalkerInfo, PetInfo, HealthMetrics, EmergencyAlertInfo,
    WalkSnapshot, HealthUpdate
)
from petwash.app.services.geo import total_route_distance, validate_location, haversine_distance

logger = logging.getLogger("petwash.walks")


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def duration_minutes(start: Optional[datetime], end: Optional[datetime]) -> int:
    if start is None or end is None:
        return 0
    seconds = (ensure_utc(end) - ensure_utc(start)).total_seconds()
    return max(0, int(seconds // 60))


class WalkService:

    # --- lookups ---

    @staticmethod
    async def get_walk(db: AsyncSession, walk_id: int) -> WalkSession:
        result = await db.execute(select(WalkSession).where(WalkSession.id == walk_id))
        walk = result.scalar_one_or_none()
        if not walk:
            raise WalkNotFoundError(walk_id)
        return walk

    @staticmethod
    async def get_route(db: AsyncSession, walk_id: int) -> List[WalkLocation]:
        result = await db.execute(
            select(WalkLocation)
            .where(WalkLocation.walk_id == walk_id)
            .order_by(WalkLocation.recorded_at, WalkLocation.id)
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_walks(
        db: AsyncSession,
        current_user: dict,
        status: Optional[WalkStatus] = None,
        limit: int = 50
    ) -> List[WalkSession]:
        """Walks the caller takes part in, newest first."""
        query = select(WalkSession)
        role = current_user.get("role")
        if role == UserRole.OWNER.value:
            query = query.where(WalkSession.owner_id == current_user["user_id"])
        elif role == UserRole.WALKER.value:
            query = query.where(WalkSession.walker_id == current_user["user_id"])
        if status:
            query = query.where(WalkSession.status == status)
        query = query.order_by(desc(WalkSession.created_at), desc(WalkSession.id)).limit(limit)
        result = await db.execute(query)
        return list(result.scalars().all())

    # --- snapshot ---

    @staticmethod
    async def build_snapshot(db: AsyncSession, walk: WalkSession, now: datetime = None) -> WalkSnapshot:
        """
        Assemble the full WalkSnapshot for one session.

        routeHistory is chronological and currentLocation is its last
        element. While active, duration runs against the current time.
        """
        walker = (await db.execute(select(User).where(User.id == walk.walker_id))).scalar_one()
        pet = (await db.execute(select(Pet).where(Pet.id == walk.pet_id))).scalar_one()
        route = await WalkService.get_route(db, walk.id)
        photos = (await db.execute(
            select(WalkPhoto).where(WalkPhoto.walk_id == walk.id).order_by(WalkPhoto.id)
        )).scalars().all()
        alerts = (await db.execute(
            select(WalkAlert).where(WalkAlert.walk_id == walk.id).order_by(WalkAlert.created_at, WalkAlert.id)
        )).scalars().all()

        history = [
            GeoSample(
                lat=loc.latitude,
                lon=loc.longitude,
                timestamp=ensure_utc(loc.recorded_at),
                accuracy=loc.accuracy_meters or 0.0,
            )
            for loc in route
        ]

        if walk.status == WalkStatus.ACTIVE:
            duration = duration_minutes(walk.start_time, now or utcnow())
        else:
            duration = walk.duration_minutes

        return WalkSnapshot(
            id=walk.id,
            status=walk.status,
            walker=WalkerInfo(
                id=walker.id,
                first_name=walker.first_name,
                last_name=walker.last_name,
                phone_number=walker.phone_number,
                photo_url=walker.photo_url,
                rating=walker.rating,
            ),
            pet=PetInfo(id=pet.id, name=pet.name, breed=pet.breed, photo_url=pet.photo_url),
            start_time=ensure_utc(walk.start_time),
            end_time=ensure_utc(walk.end_time),
            current_location=history[-1] if history else None,
            route_history=history,
            health_metrics=HealthMetrics(
                heart_rate=walk.heart_rate,
                activity_level=walk.activity_level,
                steps_count=walk.steps_count,
                calories_burned=walk.calories_burned,
            ),
            duration=duration,
            distance=walk.distance_meters,
            photos=[p.url for p in photos],
            emergency_alerts=[
                EmergencyAlertInfo(
                    id=a.id,
                    timestamp=ensure_utc(a.created_at),
                    message=a.message,
                    resolved=a.resolved,
                )
                for a in alerts
            ],
        )

    # --- lifecycle ---

    @staticmethod
    def _require_status(walk: WalkSession, allowed: tuple, action: str):
        if walk.status not in allowed:
            raise WalkStateError(
                f"Cannot {action} a {walk.status.value} walk",
                current_status=walk.status.value
            )

    @staticmethod
    async def book_walk(
        db: AsyncSession,
        owner_id: int,
        pet_id: int,
        walker_id: int,
        pickup_lat: Optional[float] = None,
        pickup_lon: Optional[float] = None
    ) -> WalkSession:
        pet = (await db.execute(select(Pet).where(Pet.id == pet_id))).scalar_one_or_none()
        if not pet:
            raise ResourceNotFoundError("Pet", pet_id)
        if pet.owner_id != owner_id:
            raise InsufficientPermissionsError("You can only book walks for your own pets")

        walker = (await db.execute(select(User).where(User.id == walker_id))).scalar_one_or_none()
        if not walker or walker.role != UserRole.WALKER or not walker.is_active:
            raise ResourceNotFoundError("Walker", walker_id)

        walk = WalkSession(
            owner_id=owner_id,
            walker_id=walker_id,
            pet_id=pet_id,
            status=WalkStatus.PENDING,
            pickup_latitude=pickup_lat,
            pickup_longitude=pickup_lon,
        )
        db.add(walk)
        await db.flush()
        logger.info("Walk %s booked for pet %s with walker %s", walk.id, pet_id, walker_id)
        return walk

    @staticmethod
    async def _append_location(db: AsyncSession, walk: WalkSession, sample: GeoSample) -> WalkLocation:
        """
        Append a sample to the trail and refresh the distance aggregate.

        Samples must not go back in time relative to the last one.
        """
        route = await WalkService.get_route(db, walk.id)
        recorded_at = ensure_utc(sample.timestamp)
        if route and recorded_at < ensure_utc(route[-1].recorded_at):
            raise StaleLocationError(ensure_utc(route[-1].recorded_at))

        location = WalkLocation(
            walk_id=walk.id,
            latitude=sample.lat,
            longitude=sample.lon,
            accuracy_meters=sample.accuracy,
            recorded_at=recorded_at,
        )
        db.add(location)

        points = [(loc.latitude, loc.longitude) for loc in route] + [(sample.lat, sample.lon)]
        walk.distance_meters = total_route_distance(points)
        await db.flush()
        return location

    @staticmethod
    async def start_walk(db: AsyncSession, walk: WalkSession, location: Optional[GeoSample] = None) -> WalkSession:
        WalkService._require_status(walk, (WalkStatus.PENDING,), "start")

        if location is not None and walk.pickup_latitude is not None and walk.pickup_longitude is not None:
            pickup = (walk.pickup_latitude, walk.pickup_longitude)
            here = (location.lat, location.lon)
            if not validate_location(here, pickup, settings.checkin_max_distance_meters):
                raise CheckInTooFarError(haversine_distance(here, pickup), settings.checkin_max_distance_meters)

        walk.status = WalkStatus.ACTIVE
        walk.start_time = utcnow()
        if location is not None:
            await WalkService._append_location(db, walk, location)
        await db.flush()
        return walk

    @staticmethod
    async def record_location(db: AsyncSession, walk: WalkSession, sample: GeoSample) -> WalkLocation:
        WalkService._require_status(walk, (WalkStatus.ACTIVE,), "record location for")
        location = await WalkService._append_location(db, walk, sample)
        walk.duration_minutes = duration_minutes(walk.start_time, utcnow())
        return location

    @staticmethod
    async def update_health(db: AsyncSession, walk: WalkSession, update: HealthUpdate) -> WalkSession:
        WalkService._require_status(walk, (WalkStatus.ACTIVE,), "update health for")
        walk.heart_rate = update.heart_rate
        walk.activity_level = update.activity_level
        walk.steps_count = update.steps_count
        walk.calories_burned = update.calories_burned
        await db.flush()
        return walk

    @staticmethod
    async def add_photo(db: AsyncSession, walk: WalkSession, url: str) -> WalkPhoto:
        WalkService._require_status(walk, (WalkStatus.ACTIVE,), "upload photos to")
        photo = WalkPhoto(walk_id=walk.id, url=url)
        db.add(photo)
        await db.flush()
        return photo

    @staticmethod
    async def raise_emergency(db: AsyncSession, walk: WalkSession, user_id: int, message: str) -> WalkAlert:
        WalkService._require_status(walk, (WalkStatus.PENDING, WalkStatus.ACTIVE), "raise an alert on")
        alert = WalkAlert(
            walk_id=walk.id,
            raised_by=user_id,
            message=message,
            resolved=False,
            created_at=utcnow(),
        )
        db.add(alert)
        await db.flush()
        logger.warning("Emergency alert %s raised on walk %s by user %s", alert.id, walk.id, user_id)
        return alert

    @staticmethod
    async def resolve_alert(db: AsyncSession, walk: WalkSession, alert_id: int) -> WalkAlert:
        WalkService._require_status(walk, (WalkStatus.PENDING, WalkStatus.ACTIVE), "resolve alerts on")
        alert = (await db.execute(
            select(WalkAlert).where(WalkAlert.id == alert_id, WalkAlert.walk_id == walk.id)
        )).scalar_one_or_none()
        if not alert:
            raise ResourceNotFoundError("Alert", alert_id)
        if not alert.resolved:
            alert.resolved = True
            alert.resolved_at = utcnow()
            await db.flush()
        return alert

    @staticmethod
    async def complete_walk(db: AsyncSession, walk: WalkSession, location: Optional[GeoSample] = None) -> WalkSession:
        WalkService._require_status(walk, (WalkStatus.ACTIVE,), "complete")
        if location is not None:
            await WalkService._append_location(db, walk, location)
        walk.end_time = utcnow()
        walk.duration_minutes = duration_minutes(walk.start_time, walk.end_time)
        walk.status = WalkStatus.COMPLETED
        await db.flush()
        logger.info(
            "Walk %s completed: %sm, %s meters",
            walk.id, walk.duration_minutes, walk.distance_meters
        )
        return walk

    @staticmethod
    async def cancel_walk(db: AsyncSession, walk: WalkSession) -> WalkSession:
        WalkService._require_status(walk, (WalkStatus.PENDING, WalkStatus.ACTIVE), "cancel")
        if walk.status == WalkStatus.ACTIVE:
            walk.end_time = utcnow()
            walk.duration_minutes = duration_minutes(walk.start_time, walk.end_time)
        walk.status = WalkStatus.CANCELLED
        await db.flush()
        return walk
