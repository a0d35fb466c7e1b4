"""
Core LLM models: chat messages sent upstream and provider configuration.

Messages are pydantic models because they arrive from untrusted HTTP bodies;
provider configuration is a frozen dataclass read once at client construction.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field

NO_RESPONSE = "No response"


class TextPart(BaseModel):
    """Plain text part of a multi-part message."""
    type: Literal["text"] = "text"
    text: str


class ImageURL(BaseModel):
    url: str


class ImagePart(BaseModel):
    """Image reference part; ``url`` may be an http(s) URI or a data-URI."""
    type: Literal["image_url"] = "image_url"
    image_url: ImageURL


ContentPart = Annotated[TextPart | ImagePart, Field(discriminator="type")]


class ChatMessage(BaseModel):
    """OpenAI-compatible chat message."""
    role: Literal["system", "user", "assistant"]
    content: str | list[ContentPart]

    def to_payload(self) -> dict[str, Any]:
        """Serialize for the upstream request body."""
        return self.model_dump(mode="json")

    def text_content(self) -> str:
        """Concatenated text of the message, ignoring image parts."""
        if isinstance(self.content, str):
            return self.content
        return " ".join(
            part.text for part in self.content if isinstance(part, TextPart)
        )


@dataclass(frozen=True)
class ProviderConfig:
    """Upstream provider configuration."""
    base_url: str
    model: str
    api_key: str = "ollama"
    provider: str = "ollama"

    # Sampling
    temperature: float = 0.7
    top_p: float = 0.9
    max_tokens: int = 512

    # Connection settings
    connect_timeout: float = 10.0
    read_timeout: float = 120.0
    write_timeout: float = 10.0
    pool_timeout: float = 10.0

    @classmethod
    def from_dict(
        cls, config: dict[str, Any], provider: str = "ollama"
    ) -> ProviderConfig:
        """Build from the dictionary returned by ``Configuration.get_llm_config``."""
        http_config = config.get("http_client", {})
        return cls(
            base_url=config["base_url"],
            model=config["model"],
            api_key=config.get("api_key", "ollama"),
            provider=provider,
            temperature=config["temperature"],
            top_p=config["top_p"],
            max_tokens=config["max_tokens"],
            connect_timeout=http_config.get("connect_timeout", 10.0),
            read_timeout=http_config.get("read_timeout", 120.0),
            write_timeout=http_config.get("write_timeout", 10.0),
            pool_timeout=http_config.get("pool_timeout", 10.0),
        )
