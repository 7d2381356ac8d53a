"""Free-text address to candidate locations"""
import logging
import time

from geoquery.services.map.errors import MapServiceError
from geoquery.services.map.map_service import GeocodingService

from .types import (
    ErrorCode,
    GeocodeRequest,
    GeocodeResult,
    UseCaseMetadata,
    UseCaseResult,
    create_error,
    create_success,
)

logger = logging.getLogger(__name__)

MIN_ADDRESS_LENGTH = 2


class Geocode:
    def __init__(self, geocoding: GeocodingService):
        self.geocoding = geocoding

    async def execute(self, request: GeocodeRequest) -> UseCaseResult:
        started = time.perf_counter()
        address = (request.address or "").strip()
        if len(address) < MIN_ADDRESS_LENGTH:
            return create_error(
                ErrorCode.INVALID_INPUT,
                f"Address must be at least {MIN_ADDRESS_LENGTH} characters",
                {"address": request.address},
            )
        try:
            locations = await self.geocoding.search(
                address, limit=request.max_results, country_code=request.country_code
            )
        except MapServiceError as exc:
            return create_error(ErrorCode.GEOCODING_FAILED, f"Geocoding failed: {exc}")
        except Exception as exc:
            logger.exception("Geocode failed")
            return create_error(ErrorCode.GEOCODING_FAILED, str(exc) or "Geocoding failed")

        if not locations:
            return create_error(
                ErrorCode.NO_RESULTS_FOUND,
                f'No locations found for "{address}"',
                {"address": address},
            )
        meta = UseCaseMetadata(
            api_calls_count=1,
            execution_time_ms=int((time.perf_counter() - started) * 1000),
        )
        return create_success(
            GeocodeResult(locations=locations, query=address, result_count=len(locations)), meta
        )
