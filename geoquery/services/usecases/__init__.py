from .find_nearest_poi import FindNearestPOI
from .find_poi_enroute import FindPOIEnroute
from .find_pois_near_poi import FindPOIsNearPOI
from .find_pois_within_time import FindPOIsWithinTime, filter_by_isochrone, sort_pois
from .geocode import Geocode
from .get_route import GetRoute
from .strategy import (
    NEAREST_STRATEGIES,
    SearchStrategy,
    first_success,
    near_poi_strategies,
    prefer_transport,
)
from .types import (
    ErrorCode,
    FindNearestPOIRequest,
    FindNearestPOIResult,
    FindPOIEnrouteRequest,
    FindPOIEnrouteResult,
    FindPOIsNearPOIRequest,
    FindPOIsNearPOIResult,
    FindPOIsWithinTimeRequest,
    FindPOIsWithinTimeResult,
    GeocodeRequest,
    GeocodeResult,
    GetRouteRequest,
    GetRouteResult,
    UseCaseError,
    UseCaseMetadata,
    UseCaseResult,
    create_error,
    create_success,
)


class UseCases:
    """Bundle of use cases sharing one set of collaborators"""

    def __init__(self, routing, poi_search, geocoding):
        self.find_nearest_poi = FindNearestPOI(routing, poi_search)
        self.find_pois_within_time = FindPOIsWithinTime(routing, poi_search)
        self.find_pois_near_poi = FindPOIsNearPOI(routing, poi_search)
        self.find_poi_enroute = FindPOIEnroute(routing, poi_search, geocoding)
        self.get_route = GetRoute(routing)
        self.geocode = Geocode(geocoding)
