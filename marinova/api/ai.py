"""
AI generation endpoints.

Every route is charge-on-success: the generation runs first and the credit is
only deducted once it returned a result.
"""
from typing import Dict, List, Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, field_validator

from marinova.api.deps import get_charging_service, get_current_user_id, get_generation_service
from marinova.features.charging.service import ChargingService
from marinova.features.generation.service import GenerationService
from marinova.models.plan import FeatureName
from marinova.models.weather import WeatherReport

router = APIRouter(prefix="/api/ai", tags=["ai"])


class AnalyzeWeatherRequest(BaseModel):
    locationName: str = Field(min_length=1)
    lat: float
    lon: float
    weatherData: WeatherReport


class ChatMessage(BaseModel):
    role: Literal["user", "model", "assistant", "system"]
    content: str


class ChatRequest(BaseModel):
    messages: List[ChatMessage] = Field(min_length=1)
    imageUrls: Optional[List[str]] = None


class ReportRequest(BaseModel):
    topic: str

    @field_validator("topic")
    @classmethod
    def _require_topic(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Topic is required")
        return value


@router.post("/analyze-weather")
def analyze_weather(
    body: AnalyzeWeatherRequest,
    user_id: str = Depends(get_current_user_id),
    charging: ChargingService = Depends(get_charging_service),
    generation: GenerationService = Depends(get_generation_service),
) -> Dict:
    result = charging.charge_if_successful(
        user_id,
        FeatureName.WEATHER_BRIEF,
        lambda: generation.analyze_weather(body.locationName, body.lat, body.lon, body.weatherData),
    )
    return {"success": True, "analysis": result.value, **result.outcome.to_dict()}


@router.post("/chat")
def chat(
    body: ChatRequest,
    user_id: str = Depends(get_current_user_id),
    charging: ChargingService = Depends(get_charging_service),
    generation: GenerationService = Depends(get_generation_service),
) -> Dict:
    messages = [m.model_dump() for m in body.messages]
    result = charging.charge_if_successful(
        user_id,
        FeatureName.CHAT,
        lambda: generation.chat(messages, body.imageUrls),
    )
    return {"success": True, "response": result.value, **result.outcome.to_dict()}


@router.post("/generate-report")
def generate_report(
    body: ReportRequest,
    user_id: str = Depends(get_current_user_id),
    charging: ChargingService = Depends(get_charging_service),
    generation: GenerationService = Depends(get_generation_service),
) -> Dict:
    result = charging.charge_if_successful(
        user_id,
        FeatureName.RESEARCH_LAB,
        lambda: generation.research_report(body.topic),
    )
    return {"success": True, "report": result.value.to_dict(), **result.outcome.to_dict()}


@router.post("/generate-insights")
def generate_insights(
    user_id: str = Depends(get_current_user_id),
    charging: ChargingService = Depends(get_charging_service),
    generation: GenerationService = Depends(get_generation_service),
) -> Dict:
    result = charging.charge_if_successful(user_id, FeatureName.INSIGHTS, generation.monthly_insights)
    return {
        "success": True,
        "insights": result.value,
        "creditsRemaining": result.outcome.remaining_credits,
        **result.outcome.to_dict(),
    }
