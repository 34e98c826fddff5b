from typing import Any

from pydantic import BaseModel


class MessageResponse(BaseModel):
    """Resposta padrao com mensagem de sucesso/erro."""

    success: bool
    message: str
    data: Any | None = None


class HealthResponse(BaseModel):
    """Resposta dos endpoints de health check."""

    status: str
    service: str
    version: str
    details: dict[str, Any] | None = None
