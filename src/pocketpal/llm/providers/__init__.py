from .openai import OpenAICompletionClient

__all__ = ["OpenAICompletionClient"]
