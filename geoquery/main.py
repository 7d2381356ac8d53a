import logging

from fastapi import Depends, FastAPI, HTTPException
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware

from geoquery.config import settings
from geoquery.logging_config import configure_logging
from geoquery.models.geo import Location
from geoquery.models.query import needs_clarification
from geoquery.models.request import ClassifyRequest, ConversationContext, OrchestratorRequest
from geoquery.models.response import ClassifyResponse, OrchestratorResponse
from geoquery.services.agents import (
    AgentOrchestrator,
    MultiStepQueryAgent,
    SimpleQueryAgent,
    build_tool_table,
)
from geoquery.services.map import APICounter, NominatimClient, ORSClient, OverpassClient
from geoquery.services.memory_service import MemoryService
from geoquery.services.nlp import QueryClassifierService
from geoquery.services.usecases import (
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
    UseCaseResult,
    UseCases,
)

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="GeoQuery API",
    description="Natural-language place search over map services",
    version=settings.api_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify exact origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

api_counter = APICounter()
routing_service = ORSClient(counter=api_counter)
poi_service = OverpassClient(counter=api_counter)
geocoding_service = NominatimClient(counter=api_counter)
use_cases = UseCases(routing_service, poi_service, geocoding_service)
tool_table = build_tool_table(use_cases, routing_service)

classifier_service = QueryClassifierService()
memory_service = MemoryService()
orchestrator = AgentOrchestrator(
    classifier=classifier_service,
    simple_agent=SimpleQueryAgent(tool_table),
    multi_step_agent=MultiStepQueryAgent(tool_table),
    memory=memory_service,
    fallback_location=Location(
        lat=settings.default_lat,
        lng=settings.default_lng,
        display_name=f"{settings.default_city}, {settings.default_state}",
    ),
)


def get_orchestrator() -> AgentOrchestrator:
    return orchestrator


def get_classifier() -> QueryClassifierService:
    return classifier_service


def get_use_cases() -> UseCases:
    return use_cases


@app.post("/api/v1/agent", response_model=OrchestratorResponse, response_model_by_alias=True)
async def run_agent(
    request: OrchestratorRequest,
    agent_orchestrator: AgentOrchestrator = Depends(get_orchestrator),
):
    """Classify a natural-language place query and answer it"""
    return await agent_orchestrator.orchestrate(request)


@app.post("/api/v1/classify", response_model=ClassifyResponse, response_model_by_alias=True)
async def classify_query(
    request: ClassifyRequest,
    classifier: QueryClassifierService = Depends(get_classifier),
):
    """Expose the classification pipeline as an API endpoint."""
    try:
        context = ConversationContext(messages=request.conversation_history)
        outcome = await run_in_threadpool(classifier.classify, request.query, context)
    except Exception as e:
        logger.exception("Classification failed")
        raise HTTPException(status_code=500, detail=f"Classification failed: {str(e)}")
    return ClassifyResponse(
        source=outcome.source,
        classification=outcome.query,
        needs_clarification=needs_clarification(outcome.query),
    )


@app.post("/api/v1/poi/nearest", response_model=UseCaseResult[FindNearestPOIResult])
async def find_nearest_poi(request: FindNearestPOIRequest, cases: UseCases = Depends(get_use_cases)):
    """Nearest POI of a category, widening the search until one is reachable"""
    return await cases.find_nearest_poi.execute(request)


@app.post("/api/v1/poi/within-time", response_model=UseCaseResult[FindPOIsWithinTimeResult])
async def find_pois_within_time(
    request: FindPOIsWithinTimeRequest, cases: UseCases = Depends(get_use_cases)
):
    """All POIs of a category inside the reachable area"""
    return await cases.find_pois_within_time.execute(request)


@app.post("/api/v1/poi/near-poi", response_model=UseCaseResult[FindPOIsNearPOIResult])
async def find_pois_near_poi(request: FindPOIsNearPOIRequest, cases: UseCases = Depends(get_use_cases)):
    return await cases.find_pois_near_poi.execute(request)


@app.post("/api/v1/poi/enroute", response_model=UseCaseResult[FindPOIEnrouteResult])
async def find_poi_enroute(request: FindPOIEnrouteRequest, cases: UseCases = Depends(get_use_cases)):
    """Best stopover on the way to a destination within the detour limit"""
    return await cases.find_poi_enroute.execute(request)


@app.post("/api/v1/directions", response_model=UseCaseResult[GetRouteResult])
async def get_directions(request: GetRouteRequest, cases: UseCases = Depends(get_use_cases)):
    return await cases.get_route.execute(request)


@app.post("/api/v1/geocode", response_model=UseCaseResult[GeocodeResult])
async def geocode(request: GeocodeRequest, cases: UseCases = Depends(get_use_cases)):
    return await cases.geocode.execute(request)


@app.get("/health")
async def health_check():
    """Health check"""
    return {
        "status": "healthy",
        "version": settings.api_version,
        "memory": memory_service.is_available(),
        "remaining_api_calls": api_counter.get_remaining_calls(),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
