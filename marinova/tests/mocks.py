"""Test doubles for the generation provider."""
import json
from typing import Any, Dict, List, Optional

from marinova.features.generation.provider import GenerationKind


DEFAULT_RESPONSES = {
    GenerationKind.WEATHER: "**Situation**: Calm seas with good visibility.",
    GenerationKind.CHAT: "Ahoy! The Gulf Stream moves warm water north.",
    GenerationKind.RESEARCH: (
        "## Executive Summary\nCoral reefs are under stress.\n\n"
        "[SOURCE 1] NOAA Coral Reef Watch | https://coralreefwatch.noaa.gov\n"
        "[SOURCE 2] IPCC AR6 | https://www.ipcc.ch/report/ar6/wg2/"
    ),
    GenerationKind.INSIGHTS: json.dumps([
        {"date": "2024-01-01", "title": "Warm anomaly", "type": "Anomaly", "region": "North Atlantic",
         "description": "Sea surface temperatures above average.", "confidence": 80,
         "severity": "Medium", "tags": ["sst"]},
        {"date": "2024-01-02", "title": "Kelp recovery", "type": "Observation", "region": "California Current",
         "description": "Kelp canopy expanding.", "confidence": 70,
         "severity": "Positive", "tags": ["kelp"]},
    ]),
}


class FakeGenerationProvider:
    """Returns canned text per kind, or raises `error` when set."""

    def __init__(self, responses: Optional[Dict[GenerationKind, str]] = None, error: Optional[BaseException] = None):
        self.responses = dict(DEFAULT_RESPONSES)
        self.responses.update(responses or {})
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    def generate(self, kind: GenerationKind, params: Dict[str, Any]) -> str:
        self.calls.append({"kind": GenerationKind(kind), "params": params})
        if self.error is not None:
            raise self.error
        return self.responses[GenerationKind(kind)]


# Open-Meteo shaped payload for weather brief tests
SAMPLE_WEATHER = {
    "current": {
        "temperature_2m": 27.5,
        "apparent_temperature": 30.1,
        "pressure_msl": 1008.2,
        "wind_speed_10m": 22.0,
        "wind_gusts_10m": 41.0,
        "wind_direction_10m": 230,
        "cloud_cover": 64,
    },
    "hourly": {"visibility": [12000, 11000]},
    "daily": {
        "temperature_2m_min": [25.1, 25.4, 24.9],
        "temperature_2m_max": [29.8, 30.2, 29.5],
        "precipitation_sum": [0.0, 4.2, 12.5, 1.0],
        "uv_index_max": [9.1, 8.7, 7.9],
        "wind_speed_10m_max": [24.0, 38.5, 31.0, 60.0],
    },
}
