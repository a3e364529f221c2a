from app.services.llm.base import LLMProvider, LLMProviderError, LLMResponse, ToolCall
from app.services.llm.openai_provider import OpenAIProvider

__all__ = ["LLMProvider", "LLMProviderError", "LLMResponse", "OpenAIProvider", "ToolCall"]
