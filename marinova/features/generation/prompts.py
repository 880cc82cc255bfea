"""Prompt builders for each generation kind."""

from typing import Dict, List, Optional, Sequence

from marinova.models.weather import WeatherReport

Message = Dict[str, object]


def _fmt(value: float) -> str:
    # 21.0 -> "21", 21.5 -> "21.5"
    return f"{value:g}"


def weather_brief_prompt(location_name: str, lat: float, lon: float, weather: WeatherReport) -> str:
    current = weather.current
    daily = weather.daily
    temp_trend = f"{_fmt(daily.temperature_2m_min[0])}°C - {_fmt(daily.temperature_2m_max[0])}°C"
    rain_forecast = ", ".join(f"{_fmt(p)}mm" for p in daily.precipitation_sum[:3])
    max_wind = max(daily.wind_speed_10m_max[:3])

    return f"""Act as an expert marine meteorologist. Analyze the detailed weather data for {location_name} (Lat: {lat}, Lon: {lon}) provided by MARINOVA's sensor network.

CURRENT CONDITIONS:
- Temp: {_fmt(current.temperature_2m)}°C (Feels like {_fmt(current.apparent_temperature)}°C)
- Pressure: {_fmt(current.pressure_msl)} hPa
- Wind: {_fmt(current.wind_speed_10m)} km/h (Gusts: {_fmt(current.wind_gusts_10m)} km/h) at {_fmt(current.wind_direction_10m)}°
- Visibility: {_fmt(weather.hourly.visibility[0] / 1000)} km
- Cloud Cover: {_fmt(current.cloud_cover)}%
- UV Index Today: {_fmt(daily.uv_index_max[0])}

FORECAST (Next 3 Days):
- Temps: {temp_trend}
- Precip: {rain_forecast}
- Max Winds: {_fmt(max_wind)} km/h

Provide a "Captain's Intelligence Brief":
1. **Situation**: Brief summary of current sea/air state (Stability, Visibility).
2. **Advisory**: Specific warnings for mariners (Gale force, Squalls, Fog, UV exposure).
3. **Outlook**: What to expect over the next 48 hours.
4. **Ocean Fact**: A short, fascinating fact about this specific coordinates/ocean region.

Tone: Professional, nautical, yet accessible. Do not mention external data providers."""


def chat_messages(messages: Sequence[Dict[str, str]], image_urls: Optional[Sequence[str]] = None) -> List[Message]:
    """Map client chat history to provider roles, attaching images to the last user turn."""
    formatted: List[Message] = [
        {"role": "assistant" if m["role"] == "model" else m["role"], "content": m["content"]}
        for m in messages
    ]
    if image_urls and formatted and formatted[-1]["role"] == "user":
        last = formatted[-1]
        last["content"] = [{"type": "text", "text": last["content"]}] + [
            {"type": "image_url", "image_url": {"url": url}} for url in image_urls
        ]
    return formatted


def research_report_prompt(topic: str) -> str:
    return f"""You are a marine research specialist. Generate a comprehensive research report on: "{topic}"

Include:
1. Executive Summary
2. Background & Context
3. Current Research & Findings
4. Key Data & Statistics
5. Future Implications
6. Conclusion

Format in markdown with headers (##). Be detailed and scientific. Include 3-5 credible sources at the end.

Sources format:
[SOURCE 1] Title | URL
[SOURCE 2] Title | URL"""


MONTHLY_INSIGHTS_PROMPT = """Generate 30 days of oceanographic insights, predictions, and anomalies for a global ocean monitoring platform.

For each day, provide ONE insight in this EXACT JSON format:
{
  "date": "YYYY-MM-DD",
  "title": "Brief title",
  "type": "Prediction|Observation|Anomaly|Event",
  "region": "Ocean region",
  "description": "150-word detailed description",
  "confidence": 60-95,
  "severity": "Low|Medium|Critical|Positive",
  "tags": ["tag1", "tag2", "tag3"]
}

Cover diverse topics: coral bleaching, currents, temperatures, marine life, pollution, climate patterns.
Return ONLY a JSON array of 30 insights, nothing else."""


def user_message(prompt: str) -> List[Message]:
    return [{"role": "user", "content": prompt}]
