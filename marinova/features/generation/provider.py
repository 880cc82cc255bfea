"""
Generation provider protocol.

Defines the interface for text-generation backends (Groq, test fakes).
Business logic only sees `generate(kind, params)` and the two error classes.
"""
import re
from enum import Enum
from typing import Any, Dict, Protocol


class GenerationKind(str, Enum):
    WEATHER = "weather"
    CHAT = "chat"
    RESEARCH = "research"
    INSIGHTS = "insights"


class GenerationProvider(Protocol):
    """
    Protocol for generation providers.

    `params["messages"]` holds the chat-completion messages to send; the
    provider picks model, temperature and token limit from `kind`.
    """

    def generate(self, kind: GenerationKind, params: Dict[str, Any]) -> str:
        """
        Run one completion.

        Returns:
            Generated text

        Raises:
            GenerationCapacityError: Provider is rate limited or overloaded
            GenerationError: Any other failure, timeouts included
        """
        ...


class GenerationError(Exception):
    """Base exception for generation provider errors."""
    pass


class GenerationCapacityError(GenerationError):
    """Transient capacity problem (rate limit, quota, overload)."""
    pass


CAPACITY_STATUS_CODES = frozenset({429, 503, 529})
_CAPACITY_MESSAGE_RE = re.compile(r"quota|overloaded|rate_limit|\brate\b|\blimits?\b", re.IGNORECASE)


def is_capacity_failure(exc: BaseException) -> bool:
    """Heuristic for provider errors that are worth retrying later."""
    if isinstance(exc, GenerationCapacityError):
        return True
    if getattr(exc, "status_code", None) in CAPACITY_STATUS_CODES:
        return True
    return bool(_CAPACITY_MESSAGE_RE.search(str(exc)))
