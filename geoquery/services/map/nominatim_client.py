"""
Nominatim geocoding client
"""
from typing import List, Optional

import httpx

from geoquery.config import settings
from geoquery.models.geo import Location

from .api_counter import APICounter
from .errors import GeocodingError
from .http import MapHTTPClient
from .map_service import GeocodingService


class NominatimClient(GeocodingService):
    """Nominatim search API implementation"""

    def __init__(
        self,
        *,
        url: Optional[str] = None,
        user_agent: Optional[str] = None,
        timeout_s: Optional[float] = None,
        counter: Optional[APICounter] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        max_retries: Optional[int] = None,
    ):
        self.url = (url or settings.nominatim_url).rstrip("/")
        # Nominatim's usage policy rejects requests without a User-Agent
        self._http = MapHTTPClient(
            name="Nominatim",
            error_cls=GeocodingError,
            timeout_s=timeout_s or settings.nominatim_timeout_s,
            counter=counter,
            transport=transport,
            headers={"User-Agent": user_agent or settings.nominatim_user_agent},
            max_retries=max_retries,
        )

    async def search(
        self, text: str, *, limit: int = 5, country_code: Optional[str] = None
    ) -> List[Location]:
        params = {"q": text, "format": "jsonv2", "limit": limit, "addressdetails": 1}
        if country_code:
            params["countrycodes"] = country_code.lower()

        data = await self._http.request("GET", f"{self.url}/search", params=params)
        if not isinstance(data, list):
            raise GeocodingError("Unexpected Nominatim response")

        locations: List[Location] = []
        for item in data:
            try:
                locations.append(
                    Location(
                        lat=float(item["lat"]),
                        lng=float(item["lon"]),
                        display_name=item.get("display_name"),
                    )
                )
            except (KeyError, TypeError, ValueError):
                continue
        return locations
