"""Wire schemas for the Ollama HTTP API.

Every payload sent to or read from the model server goes through one of
these models, so a malformed response fails validation at the boundary
instead of surfacing as a ``KeyError`` deep inside a service.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class OllamaEmbedRequest(BaseModel):
    """Body of ``POST /api/embed``.  ``input`` may be one string or a batch."""

    model: str
    input: str | list[str]


class OllamaEmbedResponse(BaseModel):
    """Body returned by ``POST /api/embed``."""

    model_config = ConfigDict(extra="ignore")

    model: str = ""
    embeddings: list[list[float]] = Field(default_factory=list)
    total_duration: int = 0
    load_duration: int = 0
    prompt_eval_count: int = 0


class OllamaModelDetails(BaseModel):
    model_config = ConfigDict(extra="ignore")

    format: str = ""
    family: str = ""
    parameter_size: str = ""
    quantization_level: str = ""


class OllamaModelInfo(BaseModel):
    """One entry of ``GET /api/tags``."""

    model_config = ConfigDict(extra="ignore")

    name: str = ""
    model: str = ""
    modified_at: str = ""
    size: int = 0
    digest: str = ""
    details: OllamaModelDetails = Field(default_factory=OllamaModelDetails)


class OllamaModelsResponse(BaseModel):
    """Body returned by ``GET /api/tags``."""

    model_config = ConfigDict(extra="ignore")

    models: list[OllamaModelInfo] = Field(default_factory=list)
