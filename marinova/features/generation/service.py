"""
marinova/features/generation/service.py

Generation use-cases on top of a `GenerationProvider`.

Handles:
- Captain's Intelligence Brief for a location's weather
- Chat replies (optionally multimodal)
- Research reports with parsed sources
- Monthly ocean insights (30-day JSON array)

None of these touch credits; callers wrap them with the charging service.
"""

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from marinova.features.generation import prompts
from marinova.features.generation.provider import GenerationError, GenerationKind, GenerationProvider
from marinova.models.weather import WeatherReport

_SOURCE_LINE_RE = re.compile(r"^\[SOURCE \d+\] (.+?) \| (.+?)$", re.MULTILINE)
_CODE_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$")


@dataclass(frozen=True)
class ResearchSource:
    title: str
    url: str

    def to_dict(self) -> Dict[str, str]:
        return {"title": self.title, "url": self.url}


@dataclass(frozen=True)
class ResearchReport:
    content: str
    sources: List[ResearchSource]

    def to_dict(self) -> Dict[str, Any]:
        return {"content": self.content, "sources": [s.to_dict() for s in self.sources]}


def parse_sources(content: str) -> List[ResearchSource]:
    return [ResearchSource(title.strip(), url.strip()) for title, url in _SOURCE_LINE_RE.findall(content)]


def parse_insights(content: str) -> List[Dict[str, Any]]:
    """Decode the insights array and assign sequential ids.

    Raises:
        GenerationError: If the output is not a JSON array of objects
    """
    text = _CODE_FENCE_RE.sub("", (content or "").strip())
    try:
        data = json.loads(text or "[]")
    except json.JSONDecodeError as e:
        raise GenerationError("Unable to generate monthly insights.") from e
    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        raise GenerationError("Unable to generate monthly insights.")
    return [{**item, "id": f"ai-insight-{index}"} for index, item in enumerate(data, start=1)]


class GenerationService:
    def __init__(self, provider: GenerationProvider):
        self.provider = provider

    def analyze_weather(self, location_name: str, lat: float, lon: float, weather: WeatherReport) -> str:
        prompt = prompts.weather_brief_prompt(location_name, lat, lon, weather)
        text = self.provider.generate(GenerationKind.WEATHER, {"messages": prompts.user_message(prompt)})
        return text or "Analysis unavailable."

    def chat(self, messages: Sequence[Dict[str, str]], image_urls: Optional[Sequence[str]] = None) -> str:
        formatted = prompts.chat_messages(messages, image_urls)
        text = self.provider.generate(GenerationKind.CHAT, {"messages": formatted})
        return text or "I apologize, I couldn't generate a response."

    def research_report(self, topic: str) -> ResearchReport:
        prompt = prompts.research_report_prompt(topic)
        content = self.provider.generate(GenerationKind.RESEARCH, {"messages": prompts.user_message(prompt)})
        return ResearchReport(content=content, sources=parse_sources(content))

    def monthly_insights(self) -> List[Dict[str, Any]]:
        content = self.provider.generate(
            GenerationKind.INSIGHTS, {"messages": prompts.user_message(prompts.MONTHLY_INSIGHTS_PROMPT)}
        )
        return parse_insights(content)
