from .gemini import GeminiProvider
from .openai import OpenAICompatProvider

__all__ = ["GeminiProvider", "OpenAICompatProvider"]
