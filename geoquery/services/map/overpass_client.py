"""
Overpass API client for bbox-scoped POI search over OpenStreetMap
"""
import logging
import re
from typing import Any, Dict, List, Optional

import httpx

from geoquery.config import settings
from geoquery.config.poi_types import get_overpass_selector
from geoquery.models.geo import POI, Bounds

from .api_counter import APICounter
from .errors import POISearchError
from .http import MapHTTPClient
from .map_service import POISearchService

logger = logging.getLogger(__name__)

QUERY_TIMEOUT_S = 25

# Cuisine is interpolated into a quoted QL regex
UNSAFE_CUISINE_RE = re.compile(r"[^\w \-]")


def build_overpass_query(
    category: str,
    bounds: Bounds,
    *,
    cuisine: Optional[str] = None,
    max_results: int = 100,
) -> str:
    selector = get_overpass_selector(category)
    cuisine = UNSAFE_CUISINE_RE.sub("", cuisine or "").strip()
    if category == "restaurant" and cuisine and cuisine != "none":
        selector = f'node[amenity=restaurant][cuisine~"{cuisine}",i]'
    bbox = f"{bounds.south},{bounds.west},{bounds.north},{bounds.east}"
    return f"[out:json][timeout:{QUERY_TIMEOUT_S}];({selector}({bbox}););out center {max_results};"


def element_to_poi(element: Dict[str, Any], category: str) -> Optional[POI]:
    center = element.get("center") or {}
    lat = element.get("lat", center.get("lat"))
    lng = element.get("lon", center.get("lon"))
    if lat is None or lng is None:
        return None

    tags = {k: str(v) for k, v in (element.get("tags") or {}).items()}
    name = (
        tags.get("name")
        or tags.get("name:en")
        or tags.get("operator")
        or f"Unnamed {category}"
    )
    osm_type = element.get("type", "node")
    osm_id = str(element.get("id"))
    tags.update({"osm_type": osm_type, "osm_id": osm_id})

    address = None
    if tags.get("addr:street"):
        address = " ".join(p for p in (tags.get("addr:housenumber"), tags["addr:street"]) if p)

    return POI(
        id=f"osm-{osm_type}-{osm_id}",
        name=name,
        type=category,
        lat=float(lat),
        lng=float(lng),
        tags=tags,
        address=address,
    )


class OverpassClient(POISearchService):
    """Overpass API implementation"""

    def __init__(
        self,
        *,
        url: Optional[str] = None,
        timeout_s: Optional[float] = None,
        counter: Optional[APICounter] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        max_retries: Optional[int] = None,
    ):
        self.url = url or settings.overpass_url
        self._http = MapHTTPClient(
            name="Overpass",
            error_cls=POISearchError,
            timeout_s=timeout_s or settings.overpass_timeout_s,
            counter=counter,
            transport=transport,
            headers={"Accept": "application/json"},
            max_retries=max_retries,
        )

    async def find_pois(
        self,
        category: str,
        bounds: Bounds,
        *,
        cuisine: Optional[str] = None,
        max_results: int = 100,
    ) -> List[POI]:
        query = build_overpass_query(
            category, bounds, cuisine=cuisine, max_results=max_results
        )
        data = await self._http.request("POST", self.url, data={"data": query})
        if not isinstance(data, dict):
            raise POISearchError("Unexpected Overpass response")

        pois: List[POI] = []
        for element in data.get("elements") or []:
            poi = element_to_poi(element, category)
            if poi is not None:
                pois.append(poi)
        logger.debug("Overpass returned %d %s POIs", len(pois), category)
        return pois
