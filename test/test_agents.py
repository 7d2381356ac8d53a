import pytest

from conftest import HOUSTON, make_poi, route_feature
from geoquery.models.geo import Location
from geoquery.models.query import QueryEntities
from geoquery.services.agents import (
    AgentContext,
    AgentTool,
    MultiStepQueryAgent,
    SimpleQueryAgent,
    build_tool_table,
)
from geoquery.services.agents.multi_step_agent import geocode_attempts, locality_of, search_category
from geoquery.services.usecases import UseCases

DOWNTOWN = Location(lat=29.86, lng=-95.37, display_name="Downtown Houston")
ROUTE_LINE = [[-95.37, 29.76], [-95.37, 29.81], [-95.37, 29.86]]


@pytest.fixture
def agents(routing, poi_search, geocoder):
    table = build_tool_table(UseCases(routing, poi_search, geocoder), routing)
    return (
        SimpleQueryAgent(table),
        MultiStepQueryAgent(table, default_city="Houston", default_state="TX"),
    )


def context(**entities) -> AgentContext:
    intent = entities.pop("intent", None)
    location = entities.pop("user_location", HOUSTON)
    return AgentContext(user_location=location, intent=intent, entities=QueryEntities(**entities))


def by_category(**results):
    return lambda category, bounds, cuisine, max_results: results.get(category, [])


# Simple agent

@pytest.mark.asyncio
async def test_simple_agent_finds_nearest(agents, poi_search):
    simple, _ = agents
    poi_search.handler = by_category(cafe=[make_poi("bean", 29.761, -95.37, name="Bean")])

    result = await simple.execute("nearest cafe", context(primary_poi="cafe", transport="walking"))

    assert result.success
    assert result.data["poi"].name == "Bean"
    assert result.tools_used == ["find_nearest_poi"]
    assert result.reasoning_steps[0] == "Query intent: find-nearest"
    assert result.reasoning_steps[-1].startswith("Found: Bean")


@pytest.mark.asyncio
async def test_simple_agent_uses_within_time_when_budget_given(agents, poi_search):
    simple, _ = agents
    poi_search.handler = by_category(cafe=[make_poi("bean", 29.761, -95.37)])

    result = await simple.execute(
        "cafes within 15 minutes", context(primary_poi="cafe", time_constraint=15)
    )

    assert result.success
    assert result.tools_used == ["find_pois_within_time"]
    assert result.data["count"] == 1
    assert result.data["time_minutes"] == 15
    assert result.data["transport"] == "walking"


@pytest.mark.asyncio
async def test_simple_agent_requires_location(agents, routing):
    simple, _ = agents
    result = await simple.execute("nearest cafe", context(primary_poi="cafe", user_location=None))

    assert not result.success
    assert result.error == "User location is required for location queries"
    assert routing.calls == []


@pytest.mark.asyncio
async def test_simple_agent_reports_use_case_failure(agents):
    simple, _ = agents
    result = await simple.execute("nearest cafe", context(primary_poi="cafe"))

    assert not result.success
    assert "No cafe found" in result.error
    assert result.tools_used == ["find_nearest_poi"]


@pytest.mark.asyncio
async def test_simple_agent_directions_geocodes_destination(agents, routing, geocoder):
    simple, _ = agents
    geocoder.results["downtown"] = [DOWNTOWN]
    routing.directions_handler = lambda coordinates, transport: [route_feature(10_000, 900, ROUTE_LINE)]

    result = await simple.execute(
        "directions downtown", context(intent="get-directions", destination="downtown")
    )

    assert result.success
    assert result.tools_used == ["geocode_address", "get_directions"]
    assert result.data["destination"] == DOWNTOWN
    assert result.data["best_route_index"] == 0


def test_agent_rejects_incomplete_tool_table():
    with pytest.raises(ValueError):
        SimpleQueryAgent({AgentTool.FIND_NEAREST_POI: None})


# Multi-step agent: find-near-poi

def near_poi_setup(poi_search):
    park = make_poi("park", 29.77, -95.37, "park", name="Memorial Park")
    closer = make_poi("closer", 29.771, -95.37)
    farther = make_poi("farther", 29.775, -95.37)
    poi_search.handler = by_category(park=[park], cafe=[farther, closer])


@pytest.mark.asyncio
async def test_multi_step_near_poi_ranks_by_matrix_time(agents, routing, poi_search):
    _, multi = agents
    near_poi_setup(poi_search)
    # Matrix says the farther cafe is quicker to reach
    routing.matrix_handler = lambda locations, transport: {
        "durations": [[0, 600, 120]],
        "distances": [[0, 800, 150]],
    }

    result = await multi.execute(
        "coffee near the nearest park",
        context(primary_poi="cafe", secondary_poi="park", transport="walking"),
    )

    assert result.success
    assert result.data["anchor_poi"].name == "Memorial Park"
    ranked = result.data["primary_pois"]
    assert [p.id for p in ranked] == ["farther", "closer"]
    assert ranked[0].travel_time_from_anchor == 2
    assert ranked[0].distance_from_anchor == 150
    assert result.data["strategy"].time_minutes == 15
    assert result.tools_used == ["find_nearest_poi", "find_pois_within_time", "calculate_matrix"]


@pytest.mark.asyncio
async def test_multi_step_near_poi_falls_back_without_matrix(agents, poi_search):
    _, multi = agents
    near_poi_setup(poi_search)

    result = await multi.execute(
        "coffee near the nearest park", context(primary_poi="cafe", secondary_poi="park")
    )

    assert result.success
    assert [p.id for p in result.data["primary_pois"]] == ["closer", "farther"]
    assert "Matrix calculation failed, using straight-line distances" in result.reasoning_steps


@pytest.mark.asyncio
async def test_multi_step_near_poi_with_no_candidates_is_not_an_error(agents, poi_search):
    _, multi = agents
    poi_search.handler = by_category(park=[make_poi("park", 29.77, -95.37, "park", name="Memorial Park")])

    result = await multi.execute(
        "coffee near the nearest park", context(primary_poi="cafe", secondary_poi="park")
    )

    assert result.success
    assert result.data["primary_pois"] == []
    assert result.message == "No cafes found within 60 minutes driving of Memorial Park"
    assert result.tools_used.count("find_pois_within_time") == 6


@pytest.mark.asyncio
async def test_multi_step_near_poi_fails_without_anchor(agents):
    _, multi = agents
    result = await multi.execute(
        "coffee near the nearest park", context(primary_poi="cafe", secondary_poi="park")
    )
    assert not result.success
    assert result.error == "Could not find nearest park"


# Multi-step agent: find-enroute

def enroute_setup(routing, poi_search, geocoder, direct_s=600):
    geocoder.results["downtown, Houston, TX"] = [DOWNTOWN]
    routing.directions_handler = lambda coordinates, transport: [
        route_feature(10_000, direct_s, ROUTE_LINE)
    ]
    poi_search.handler = by_category(
        restaurant=[make_poi("r2", 29.815, -95.37, "restaurant"), make_poi("r1", 29.811, -95.37, "restaurant")]
    )


def optimizer(durations):
    def handler(jobs, vehicles):
        job = jobs[0]
        return {
            "routes": [
                {
                    "duration": durations[job["location"][1]],
                    "distance": 11_000,
                    "steps": [
                        {"type": "start", "location": vehicles[0]["start"]},
                        {"type": "job", "id": job["id"], "location": job["location"]},
                        {"type": "end", "location": vehicles[0]["end"]},
                    ],
                }
            ],
            "unassigned": [],
        }

    return handler


@pytest.mark.asyncio
async def test_multi_step_enroute_picks_fastest_optimized_stopover(agents, routing, poi_search, geocoder):
    _, multi = agents
    enroute_setup(routing, poi_search, geocoder)
    routing.optimize_handler = optimizer({29.811: 1500, 29.815: 1200})

    result = await multi.execute(
        "grab food on the way downtown",
        context(primary_poi="restaurant", destination="downtown", transport="driving", time_constraint=30),
    )

    assert result.success
    assert geocoder.calls == ["downtown", "downtown, Houston, TX"]
    assert result.data["stopover_poi"].id == "r2"
    assert result.data["total_time"] == 20
    assert result.data["time_savings"] == -10
    assert routing.count("optimize") == 2
    vehicle = routing.calls[-1][2][0]
    assert vehicle["profile"] == "driving-car"
    assert result.tools_used == [
        "geocode_address",
        "geocode_address",
        "get_directions",
        "find_pois_within_time",
        "optimize_route",
    ]


@pytest.mark.asyncio
async def test_multi_step_enroute_falls_back_when_optimizer_fails(agents, routing, poi_search, geocoder):
    _, multi = agents
    enroute_setup(routing, poi_search, geocoder)

    result = await multi.execute(
        "grab food on the way downtown",
        context(primary_poi="restaurant", destination="downtown", transport="driving"),
    )

    assert result.success
    assert result.data["stopover_poi"].id == "r1"
    assert result.data["optimized_route"] == result.data["direct_route"]
    assert "Optimization failed, returning nearest POIs" in result.reasoning_steps


@pytest.mark.asyncio
async def test_multi_step_enroute_stops_when_direct_route_too_long(agents, routing, poi_search, geocoder):
    _, multi = agents
    enroute_setup(routing, poi_search, geocoder, direct_s=3600)

    result = await multi.execute(
        "grab food on the way downtown",
        context(primary_poi="restaurant", destination="downtown", time_constraint=30),
    )

    assert result.success
    assert "exceeds your 30 minute limit" in result.data["message"]
    assert poi_search.calls == []


@pytest.mark.asyncio
async def test_multi_step_enroute_reports_unresolvable_destination(agents, geocoder):
    _, multi = agents
    result = await multi.execute(
        "coffee on the way to atlantis", context(primary_poi="cafe", destination="atlantis")
    )

    assert not result.success
    assert result.error.startswith("Could not find destination: atlantis")
    assert len(geocoder.calls) == 3


def test_locality_parsing_and_geocode_attempts():
    assert locality_of(Location(lat=1, lng=1, display_name="Austin, TX"), "Houston", "TX") == ("Austin", "TX")
    assert locality_of(
        Location(lat=1, lng=1, display_name="Dallas, TX (32.77, -96.79)"), "Houston", "TX"
    ) == ("Dallas", "TX")
    assert locality_of(Location(lat=1, lng=1, display_name="(1.0, 1.0)"), "Houston", "TX") == ("Houston", "TX")
    assert locality_of(None, "Houston", "TX") == ("Houston", "TX")

    attempts = geocode_attempts("Downtown", "Houston", "TX")
    assert attempts[:3] == ["Downtown", "Downtown, Houston, TX", "Downtown, Houston"]
    assert "downtown Houston, TX" in attempts
    assert len(geocode_attempts("airport", "Houston", "TX")) == 3


def test_search_category_prefers_cuisine_venue():
    assert search_category("cafe", None) == "cafe"
    assert search_category("cafe", "Italian") == "restaurant"
    assert search_category("restaurant", "coffee") == "cafe"
