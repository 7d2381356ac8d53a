"""Prompt templates for the query classification pipeline."""
from __future__ import annotations

from textwrap import dedent

CLASSIFIER_SYSTEM_PROMPT = dedent(
    """
    You are an expert query classifier for a conversational map application. Analyze requests about finding places and classify them into exactly one intent.
    """
).strip()

CLASSIFIER_PROMPT = dedent(
    """
    ## Intents
    - find-nearest: the single nearest place of a type ("nearest cafe", "closest hospital").
    - find-within-time: all places of a type within a travel-time budget ("restaurants within 15 minutes walk").
    - find-near-poi: places of type X near the nearest place of type Y ("coffee shops near the nearest park").
    - find-enroute: a stop on the way to a destination ("gas station before going to the airport in 30 mins").
    - get-directions: a route to a named place ("directions to the airport").
    - follow-up: refers to previous results ("tell me more about that one").
    - clarification: too vague or missing the place type.

    ## Entities
    - primaryPOI: what the user wants. One of: restaurant, cafe, grocery, pharmacy, hospital, school, park, gym, bank, atm, gas_station, shopping, entertainment, transport, accommodation, other.
    - secondaryPOI: the landmark place type for find-near-poi.
    - transport: walking, driving, cycling or public_transport.
    - timeConstraint: minutes, as an integer.
    - destination: free-text destination for find-enroute or get-directions.
    - cuisine: cuisine word if mentioned (italian, mexican, ...).

    ## Response format
    Respond with ONLY one JSON object, no markdown:
    {"intent": "find-within-time", "complexity": "simple", "entities": {"primaryPOI": "restaurant", "transport": "walking", "timeConstraint": 15}, "requiresContext": false, "confidence": 0.95, "reasoning": "explicit time budget"}

    complexity is "multi-step" for find-near-poi and find-enroute, otherwise "simple".
    """
).strip()
