from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, Field


class MessageRole(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class TextContent(BaseModel):
    value: str
    annotations: List[Any] = Field(default_factory=list)


class ContentPart(BaseModel):
    type: str
    text: Optional[TextContent] = None


class ThreadMessage(BaseModel):
    id: str
    role: str
    content: List[ContentPart] = Field(default_factory=list)
    run_id: Optional[str] = None

    def first_text(self) -> Optional[str]:
        """
        Return the first content part when it is plain text, else None.
        """
        if not self.content:
            return None
        part = self.content[0]
        if part.type != "text" or part.text is None:
            return None
        return part.text.value


__all__ = ["MessageRole", "TextContent", "ContentPart", "ThreadMessage"]
