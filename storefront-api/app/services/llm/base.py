from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional


class LLMProviderError(Exception):
    """Raised when the model endpoint answers with an error."""


@dataclass
class ToolCall:
    id: str
    name: str
    arguments: str  # raw JSON as sent by the model


@dataclass
class LLMResponse:
    content: str
    model: str
    usage: Optional[dict] = None
    tool_calls: List[ToolCall] = field(default_factory=list)

    def as_assistant_message(self) -> dict:
        """Echo of this response, suitable for appending to the next request."""
        message: dict = {"role": "assistant", "content": self.content or None}
        if self.tool_calls:
            message["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": call.arguments},
                }
                for call in self.tool_calls
            ]
        return message


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    @abstractmethod
    async def generate(
        self,
        messages: List[dict],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        tools: Optional[List[dict]] = None,
    ) -> LLMResponse:
        """Generate response from LLM."""
        pass
