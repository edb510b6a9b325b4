from .client import AssistantsClient

__all__ = ["AssistantsClient"]
