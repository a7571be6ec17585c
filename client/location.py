"""
Location resolution: nearest reference city for a device position.

The geolocation source is injected as a callable returning (lat, lng), so
the same code works for a GPS fix, an IP lookup, or a test double.
"""

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from client.errors import LocationUnavailable

logger = logging.getLogger(__name__)

GeolocationProvider = Callable[[], Tuple[float, float]]

POPULAR_LOCATIONS: List[Dict[str, Any]] = [
    {"id": 1, "name": "Mumbai", "state": "Maharashtra", "lat": 19.0760, "lng": 72.8777},
    {"id": 2, "name": "Delhi", "state": "Delhi", "lat": 28.7041, "lng": 77.1025},
    {"id": 3, "name": "Bangalore", "state": "Karnataka", "lat": 12.9716, "lng": 77.5946},
    {"id": 4, "name": "Hyderabad", "state": "Telangana", "lat": 17.3850, "lng": 78.4867},
    {"id": 5, "name": "Kolkata", "state": "West Bengal", "lat": 22.5726, "lng": 88.3639},
    {"id": 6, "name": "Chennai", "state": "Tamil Nadu", "lat": 13.0827, "lng": 80.2707},
    {"id": 7, "name": "Pune", "state": "Maharashtra", "lat": 18.5204, "lng": 73.8567},
    {"id": 8, "name": "Ahmedabad", "state": "Gujarat", "lat": 23.0225, "lng": 72.5714},
]


def nearest_location(lat: float, lng: float,
                     candidates: Sequence[Mapping[str, Any]] = POPULAR_LOCATIONS) -> Mapping[str, Any]:
    """
    The candidate closest to (lat, lng) by squared Euclidean distance on raw
    degrees. Ties go to the earlier candidate.
    """
    if not candidates:
        raise ValueError("candidates must not be empty")

    best = candidates[0]
    best_dist = float("inf")
    for c in candidates:
        dist = (c["lat"] - lat) ** 2 + (c["lng"] - lng) ** 2
        if dist < best_dist:
            best, best_dist = c, dist
    return best


def resolve_current_location(provider: Optional[GeolocationProvider],
                             candidates: Sequence[Mapping[str, Any]] = POPULAR_LOCATIONS) -> Dict[str, Any]:
    """
    Ask the provider for a position and label it with the nearest city.

    Raises:
        LocationUnavailable: No provider, the provider failed (denied,
            timed out, unsupported), or it returned something unusable.
    """
    if provider is None:
        raise LocationUnavailable("Geolocation not available")

    try:
        lat, lng = provider()
        lat, lng = float(lat), float(lng)
    except OSError as e:
        # PermissionError (denied) and TimeoutError are both OSErrors
        raise LocationUnavailable(f"Geolocation error: {e}") from e
    except (TypeError, ValueError) as e:
        raise LocationUnavailable("Geolocation returned an invalid position") from e

    city = nearest_location(lat, lng, candidates)
    logger.info("Resolved position to %s", city["name"])

    return {
        "id": "current",
        "name": city["name"],
        "state": city["state"],
        "lat": lat,
        "lng": lng,
        "isCurrentLocation": True,
    }
