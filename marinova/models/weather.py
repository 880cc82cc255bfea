"""
marinova/models/weather.py

Weather payload supplied by the client (Open-Meteo shaped).

Only the fields the weather brief reads are declared; anything else the
client sends is kept but ignored.
"""

from typing import List
from pydantic import BaseModel, ConfigDict, Field


class CurrentConditions(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    temperature_2m: float
    apparent_temperature: float
    pressure_msl: float
    wind_speed_10m: float
    wind_gusts_10m: float
    wind_direction_10m: float
    cloud_cover: float


class HourlyForecast(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    visibility: List[float] = Field(min_length=1)


class DailyForecast(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    temperature_2m_min: List[float] = Field(min_length=1)
    temperature_2m_max: List[float] = Field(min_length=1)
    precipitation_sum: List[float] = Field(min_length=1)
    uv_index_max: List[float] = Field(min_length=1)
    wind_speed_10m_max: List[float] = Field(min_length=1)


class WeatherReport(BaseModel):
    """Immutable structured weather input for one location."""
    model_config = ConfigDict(frozen=True, extra="allow")

    current: CurrentConditions
    hourly: HourlyForecast
    daily: DailyForecast
