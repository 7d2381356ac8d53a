"""Normalize routing-service GeoJSON features into RouteInfo."""
from typing import Any, Dict, List, Optional

from geoquery.models.geo import RouteInfo, RouteStep

STEEP_THRESHOLD_M = 100


def _elevation_change(coordinates: List[List[float]]):
    ascent = 0.0
    descent = 0.0
    for prev, curr in zip(coordinates, coordinates[1:]):
        if len(prev) < 3 or len(curr) < 3:
            continue
        diff = curr[2] - prev[2]
        if diff > 0:
            ascent += diff
        else:
            descent -= diff
    return round(ascent), round(descent)


def traffic_hint(avg_speed_kmh: float) -> str:
    if avg_speed_kmh < 30:
        return "Heavy traffic expected"
    if avg_speed_kmh < 50:
        return "Moderate traffic"
    return "Light traffic"


def parse_route(feature: Dict[str, Any], transport: Optional[str] = None) -> RouteInfo:
    properties = feature.get("properties") or {}
    summary = properties.get("summary") or feature.get("summary") or {}
    geometry = feature.get("geometry") or {}
    coordinates = geometry.get("coordinates") or []
    segments = properties.get("segments") or feature.get("segments") or []

    distance = float(summary.get("distance") or 0)
    duration_s = float(summary.get("duration") or 0)

    if "ascent" in properties and "descent" in properties:
        ascent, descent = round(properties["ascent"]), round(properties["descent"])
    elif coordinates and len(coordinates[0]) == 3:
        ascent, descent = _elevation_change(coordinates)
    else:
        ascent, descent = 0, 0

    avg_speed = 0.0
    if distance > 0 and duration_s > 0:
        avg_speed = round((distance / 1000) / (duration_s / 3600))

    warnings: List[str] = []
    steps: List[RouteStep] = []
    for segment in segments:
        warnings.extend(str(w) for w in segment.get("warnings") or [])
        for step in segment.get("steps") or []:
            steps.append(
                RouteStep(
                    instruction=step.get("instruction") or "",
                    name=step.get("name") or None,
                    distance=float(step.get("distance") or 0),
                    duration=float(step.get("duration") or 0) / 60,
                    type=step.get("type"),
                )
            )

    if transport == "driving" and avg_speed > 0:
        warnings.append(traffic_hint(avg_speed))
    if ascent > STEEP_THRESHOLD_M:
        warnings.append(f"Steep climb: +{ascent}m elevation gain")
    if descent > STEEP_THRESHOLD_M:
        warnings.append(f"Steep descent: -{descent}m elevation loss")

    return RouteInfo(
        distance=distance,
        duration=duration_s / 60,
        geometry=coordinates,
        steps=steps,
        warnings=warnings,
        ascent=ascent,
        descent=descent,
        avg_speed=avg_speed,
        bbox=feature.get("bbox"),
        extras=properties.get("extras") or {},
    )


def parse_routes(
    features: List[Dict[str, Any]], transport: Optional[str] = None
) -> List[RouteInfo]:
    return [parse_route(feature, transport) for feature in features]
