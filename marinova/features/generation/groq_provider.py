"""
Groq generation provider.

Wraps the Groq chat-completions API behind `GenerationProvider`. The client
is injected so tests and the app can share or replace it.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import groq

from marinova.core.config import Settings, settings as default_settings
from marinova.features.generation.provider import (
    GenerationCapacityError,
    GenerationError,
    GenerationKind,
    is_capacity_failure,
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletionSettings:
    model: str
    max_tokens: int
    temperature: float


def completion_settings(cfg: Settings) -> Mapping[GenerationKind, CompletionSettings]:
    return {
        GenerationKind.WEATHER: CompletionSettings(cfg.AI_WEATHER_MODEL, cfg.AI_WEATHER_MAX_TOKENS, cfg.AI_WEATHER_TEMPERATURE),
        GenerationKind.CHAT: CompletionSettings(cfg.AI_CHAT_MODEL, cfg.AI_CHAT_MAX_TOKENS, cfg.AI_CHAT_TEMPERATURE),
        GenerationKind.RESEARCH: CompletionSettings(cfg.AI_RESEARCH_MODEL, cfg.AI_RESEARCH_MAX_TOKENS, cfg.AI_RESEARCH_TEMPERATURE),
        GenerationKind.INSIGHTS: CompletionSettings(cfg.AI_INSIGHTS_MODEL, cfg.AI_INSIGHTS_MAX_TOKENS, cfg.AI_INSIGHTS_TEMPERATURE),
    }


class GroqGenerationProvider:
    def __init__(self, client: Optional[groq.Groq] = None, cfg: Optional[Settings] = None):
        cfg = cfg or default_settings
        self._client = client or groq.Groq(api_key=cfg.GROQ_API_KEY, timeout=cfg.AI_TIMEOUT_SECONDS)
        self._settings = completion_settings(cfg)

    def generate(self, kind: GenerationKind, params: Dict[str, Any]) -> str:
        kind = GenerationKind(kind)
        config = self._settings[kind]
        try:
            response = self._client.chat.completions.create(
                model=config.model,
                messages=params["messages"],
                max_tokens=config.max_tokens,
                temperature=config.temperature,
            )
        except groq.RateLimitError as e:
            raise GenerationCapacityError(str(e)) from e
        except groq.APIStatusError as e:
            if is_capacity_failure(e):
                raise GenerationCapacityError(str(e)) from e
            raise GenerationError(f"Groq request failed with status {e.status_code}") from e
        except groq.APIError as e:
            # Timeouts and connection errors land here
            raise GenerationError(str(e) or type(e).__name__) from e

        content = response.choices[0].message.content if response.choices else None
        logger.debug("generation.complete", extra={"event_type": "generation", "kind": kind.value, "model": config.model})
        return content or ""
