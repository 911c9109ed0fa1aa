"""
Map state adapter.

Keeps a map's marker and walked path in step with the walk without
rebuilding the map on each update. Rendering is delegated to a
MapRenderer; GeoJSONRenderer keeps the map as a GeoJSON document that any
web map can draw.
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Tuple

from petwash.app.core.config import tracker_settings
from petwash.app.schemas.realtime import WalkEvent
from petwash.app.schemas.walk import GeoSample, WalkSnapshot
from petwash.app.services.geo import bounding_box
from petwash.app.tracking.errors import MapInitializationError

logger = logging.getLogger("petwash.tracking.map")

Point = Tuple[float, float]  # (lat, lon)

WAITING_FOR_SIGNAL = "Waiting for GPS signal..."
FAILED_TO_LOAD = "Failed to load map"


class MapRenderer(ABC):
    """Drawing surface for one walk. Any method may raise on library failure."""

    @abstractmethod
    def create(self, center: Point, zoom: int):
        ...

    @abstractmethod
    def set_path(self, points: List[Point]):
        ...

    @abstractmethod
    def extend_path(self, point: Point):
        ...

    @abstractmethod
    def place_marker(self, point: Point):
        ...

    @abstractmethod
    def move_marker(self, point: Point):
        ...

    @abstractmethod
    def fit_bounds(self, south_west: Point, north_east: Point, padding: Tuple[int, int]):
        ...

    @abstractmethod
    def destroy(self):
        ...


class GeoJSONRenderer(MapRenderer):
    """Renders into a GeoJSON FeatureCollection plus a viewport dict."""

    def __init__(self):
        self.marker = None
        self.path = None
        self.viewport = {}
        self.destroyed = False
        self.marker_placements = 0
        self.path_builds = 0

    def create(self, center, zoom):
        self.viewport = {"center": list(center), "zoom": zoom}

    def set_path(self, points):
        self.path_builds += 1
        self.path = {
            "type": "Feature",
            "properties": {"kind": "route"},
            "geometry": {"type": "LineString", "coordinates": [[lon, lat] for lat, lon in points]},
        }

    def extend_path(self, point):
        if self.path is None:
            self.set_path([point])
            return
        lat, lon = point
        self.path["geometry"]["coordinates"].append([lon, lat])

    def place_marker(self, point):
        self.marker_placements += 1
        lat, lon = point
        self.marker = {
            "type": "Feature",
            "properties": {"kind": "walker"},
            "geometry": {"type": "Point", "coordinates": [lon, lat]},
        }

    def move_marker(self, point):
        if self.marker is None:
            self.place_marker(point)
            return
        lat, lon = point
        self.marker["geometry"]["coordinates"] = [lon, lat]

    def fit_bounds(self, south_west, north_east, padding):
        self.viewport["bounds"] = [list(south_west), list(north_east)]
        self.viewport["padding"] = list(padding)

    def destroy(self):
        self.destroyed = True
        self.marker = None
        self.path = None

    def to_geojson(self) -> dict:
        features = [f for f in (self.path, self.marker) if f is not None]
        return {"type": "FeatureCollection", "features": features}


def _point(sample: GeoSample) -> Point:
    return (sample.lat, sample.lon)


class MapAdapter:
    """
    Map lifecycle for the tracking view.

    States:
        waiting: no location yet, placeholder text instead of a marker
        ready: renderer built, marker and path live
        error: renderer failed, textual fallback, updates ignored
    """

    def __init__(
        self,
        renderer_factory: Callable[[], MapRenderer] = GeoJSONRenderer,
        padding: Tuple[int, int] = None,
        zoom: int = None
    ):
        self._renderer_factory = renderer_factory
        self.padding = tuple(tracker_settings.map_fit_padding if padding is None else padding)
        self.zoom = tracker_settings.map_default_zoom if zoom is None else zoom
        self.walk_id = None
        self.renderer: Optional[MapRenderer] = None
        self.path: List[Point] = []
        self.marker: Optional[Point] = None
        self.error: Optional[str] = None
        self.failure: Optional[MapInitializationError] = None

    @property
    def state(self) -> str:
        if self.error:
            return "error"
        if self.renderer is None:
            return "waiting"
        return "ready"

    @property
    def placeholder(self) -> Optional[str]:
        if self.error:
            return self.error
        if self.renderer is None:
            return WAITING_FOR_SIGNAL
        return None

    def load(self, snapshot: WalkSnapshot):
        """
        Bring the map up to date with a fetched snapshot.

        A new walk identity tears the map down first. Only history beyond
        what is already drawn is appended, so the same snapshot twice
        changes nothing and an older one cannot move the marker back.
        """
        if snapshot.id != self.walk_id:
            self.destroy()
            self.walk_id = snapshot.id
        if self.error:
            return

        history = [_point(s) for s in snapshot.route_history]
        current = _point(snapshot.current_location) if snapshot.current_location else None
        if current is None and not history:
            return

        if self.renderer is None:
            self._build(history, current or history[-1])
            return

        if not self.path:
            if current is not None and current != self.marker:
                self._guarded(self._move, current)
            return
        # Marker stays on the last drawn point
        if len(history) > len(self.path):
            self._guarded(self._append, history[len(self.path):])
            if self.path[-1] != self.marker:
                self._guarded(self._move, self.path[-1])

    def apply_gps(self, event: WalkEvent):
        """Move the marker to a pushed location and extend the path."""
        if event.type != "gps_update" or event.location is None:
            return
        if self.walk_id is not None and str(event.walk_id) != str(self.walk_id):
            return
        if self.error:
            return
        if self.walk_id is None:
            self.walk_id = event.walk_id

        point = _point(event.location)
        if self.renderer is None:
            self._build([point], point)
            return
        self._guarded(self._append, [point])
        self._guarded(self._move, point)

    def destroy(self):
        renderer, self.renderer = self.renderer, None
        if renderer is not None:
            try:
                renderer.destroy()
            except Exception:
                logger.exception("Map teardown failed for walk %s", self.walk_id)
        self.walk_id = None
        self.path = []
        self.marker = None
        self.error = None
        self.failure = None

    # --- internals ---

    def _build(self, history: List[Point], current: Point):
        try:
            renderer = self._renderer_factory()
            renderer.create(current, self.zoom)
            if history:
                renderer.set_path(history)
                south_west, north_east = bounding_box(history)
                renderer.fit_bounds(south_west, north_east, self.padding)
            renderer.place_marker(current)
        except Exception as e:
            self._fail(e)
            return
        self.renderer = renderer
        self.path = list(history)
        self.marker = current

    def _append(self, points: List[Point]):
        for point in points:
            self.renderer.extend_path(point)
            self.path.append(point)

    def _move(self, point: Point):
        self.renderer.move_marker(point)
        self.marker = point

    def _guarded(self, operation, arg):
        if self.renderer is None:
            return
        try:
            operation(arg)
        except Exception as e:
            self._fail(e)

    def _fail(self, exc: Exception):
        logger.exception("Map renderer failed for walk %s", self.walk_id)
        self.failure = MapInitializationError(f"{type(exc).__name__}: {exc}")
        self.error = FAILED_TO_LOAD
        self.renderer = None
