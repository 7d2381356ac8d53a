"""
OpenRouteService client: isochrones, directions, matrices and the
vehicle-routing optimizer
"""
import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from geoquery.config import settings
from geoquery.models.geo import Isochrone, Location
from geoquery.services.geo import bbox_of

from .api_counter import APICounter
from .errors import RoutingServiceError
from .http import MapHTTPClient
from .map_service import RoutingService

logger = logging.getLogger(__name__)

ORS_PROFILES = {
    "walking": "foot-walking",
    "driving": "driving-car",
    "cycling": "cycling-regular",
    # ORS has no transit profile
    "public_transport": "foot-walking",
}

# Alternative route parameters
ALTERNATIVE_SHARE_FACTOR = 0.6
ALTERNATIVE_TARGET_COUNT = 2
ALTERNATIVE_WEIGHT_FACTOR = 1.4


def get_ors_profile(transport: str) -> str:
    return ORS_PROFILES.get(transport, "foot-walking")


class ORSClient(RoutingService):
    """OpenRouteService API implementation"""

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_s: Optional[float] = None,
        counter: Optional[APICounter] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        max_retries: Optional[int] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.ors_api_key
        self.base_url = (base_url or settings.ors_base_url).rstrip("/")
        self._http = MapHTTPClient(
            name="ORS",
            error_cls=RoutingServiceError,
            timeout_s=timeout_s or settings.ors_timeout_s,
            counter=counter,
            transport=transport,
            headers={
                "Accept": "application/json, application/geo+json",
                "Authorization": self.api_key,
            },
            max_retries=max_retries,
        )

        if not self.api_key:
            logger.warning("ORS API key is not configured; requests will be rejected")

    async def _post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        payload = await self._http.request(
            "POST",
            f"{self.base_url}{path}",
            params={"api_key": self.api_key},
            json=body,
        )
        if not isinstance(payload, dict):
            raise RoutingServiceError(f"Unexpected ORS response for {path}")
        return payload

    async def get_isochrone(
        self, location: Location, transport: str, range_seconds: int
    ) -> Isochrone:
        profile = get_ors_profile(transport)
        body = {
            "locations": [location.to_lng_lat()],
            "range": [int(range_seconds)],
            "range_type": "time",
        }
        data = await self._post(f"/v2/isochrones/{profile}", body)
        return self.parse_isochrone(data, location, transport, int(range_seconds))

    @staticmethod
    def parse_isochrone(
        data: Dict[str, Any], center: Location, transport: str, range_seconds: int
    ) -> Isochrone:
        """Flatten Polygon/MultiPolygon features into exterior rings"""
        polygons: List[List[List[float]]] = []
        for feature in data.get("features") or []:
            geometry = (feature or {}).get("geometry") or {}
            coords = geometry.get("coordinates") or []
            if geometry.get("type") == "Polygon" and coords:
                polygons.append(coords[0])
            elif geometry.get("type") == "MultiPolygon":
                polygons.extend(poly[0] for poly in coords if poly)

        bbox = data.get("bbox")
        if not bbox or len(bbox) != 4:
            points = [c for ring in polygons for c in ring]
            if not points:
                raise RoutingServiceError("Isochrone response has neither polygons nor bbox")
            bbox = bbox_of(points)

        return Isochrone(
            polygons=polygons,
            bbox=tuple(bbox),
            center=center,
            range_seconds=range_seconds,
            transport=transport,
        )

    async def get_directions(
        self,
        coordinates: Sequence[Location],
        transport: str,
        *,
        alternatives: bool = False,
        avoid_features: Optional[List[str]] = None,
    ) -> List[Dict[str, Any]]:
        if len(coordinates) < 2:
            raise RoutingServiceError("Directions need at least two coordinates")

        profile = get_ors_profile(transport)
        body: Dict[str, Any] = {
            "coordinates": [loc.to_lng_lat() for loc in coordinates],
            "instructions": True,
            "elevation": True,
            "attributes": ["avgspeed"],
        }
        # ORS only computes alternatives for plain A->B requests
        if alternatives and len(coordinates) == 2:
            body["alternative_routes"] = {
                "share_factor": ALTERNATIVE_SHARE_FACTOR,
                "target_count": ALTERNATIVE_TARGET_COUNT,
                "weight_factor": ALTERNATIVE_WEIGHT_FACTOR,
            }
        if avoid_features:
            body["options"] = {"avoid_features": list(avoid_features)}

        data = await self._post(f"/v2/directions/{profile}/geojson", body)
        features = data.get("features") or []
        if not features:
            raise RoutingServiceError("No route found", details=data)
        return features

    async def get_matrix(
        self,
        locations: Sequence[Location],
        transport: str,
        *,
        sources: Optional[List[int]] = None,
        destinations: Optional[List[int]] = None,
        metrics: Sequence[str] = ("duration", "distance"),
    ) -> Dict[str, Any]:
        profile = get_ors_profile(transport)
        body: Dict[str, Any] = {
            "locations": [loc.to_lng_lat() for loc in locations],
            "metrics": list(metrics),
        }
        if sources is not None:
            body["sources"] = sources
        if destinations is not None:
            body["destinations"] = destinations

        data = await self._post(f"/v2/matrix/{profile}", body)
        return {
            "durations": data.get("durations") or [],
            "distances": data.get("distances") or [],
        }

    async def optimize(
        self, jobs: List[Dict[str, Any]], vehicles: List[Dict[str, Any]]
    ) -> Dict[str, Any]:
        data = await self._post("/optimization", {"jobs": jobs, "vehicles": vehicles})
        return {
            "routes": data.get("routes") or [],
            "unassigned": data.get("unassigned") or [],
            "summary": data.get("summary") or {},
        }
