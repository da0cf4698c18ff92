# app/models/event.py
"""
Modelos Pydantic dos eventos de entrada/saída (check-in/check-out) de
alunos nas salas da academia, registrados a partir da leitura de um QR code.
"""

# ========================
# --- Importações ---
# ========================
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, ConfigDict, model_validator

# ========================
# --- Enumerações ---
# ========================
class EventMode(str, Enum):
    """Tipo do evento registrado."""
    CHECK_IN = "check-in"
    CHECK_OUT = "check-out"

# ========================
# --- Modelos Pydantic de Evento ---
# ========================
class EventCreate(BaseModel):
    """
    Payload enviado pelo leitor da recepção para registrar um evento.
    O QR code pode ser enviado como token puro ou como a URL lida.
    """
    mode: EventMode = Field(..., title="Tipo do Evento")
    room_id: str = Field(..., min_length=1, max_length=64, title="ID da Sala")
    token: Optional[str] = Field(None, title="Token do QR code")
    url: Optional[str] = Field(None, title="URL lida do QR code")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "mode": "check-in",
                    "room_id": "sala-musculacao",
                    "url": "https://gymembrace.app/checkin?token=eyJ...J9.c2ln..."
                }
            ]
        }
    }

    @model_validator(mode='after')
    def check_token_or_url(self) -> 'EventCreate':
        if (self.token is None) == (self.url is None):
            raise ValueError("Informe exatamente um entre 'token' e 'url'.")
        return self

class Event(BaseModel):
    """Evento como armazenado no banco e retornado pela API."""
    id: uuid.UUID = Field(default_factory=uuid.uuid4, title="ID do Evento")
    user_id: str = Field(..., title="ID do Aluno")
    room_id: str = Field(..., title="ID da Sala")
    mode: EventMode = Field(..., title="Tipo do Evento")
    recorded_by: Optional[str] = Field(None, title="ID de quem registrou o evento")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), title="Data do Evento")

    model_config = ConfigDict(from_attributes=True)

class EventUser(BaseModel):
    """Dados do aluno exibidos junto a um evento."""
    name: str = Field(..., title="Nome de Exibição")

class EventWithDetails(Event):
    """Evento retornado nas listagens, com o nome do aluno quando ele ainda existe."""
    user: Optional[EventUser] = Field(None, title="Aluno")

class EventList(BaseModel):
    """Página de eventos, do mais recente para o mais antigo."""
    events: List[EventWithDetails] = Field(default_factory=list)
    has_more: bool = Field(False, title="Há mais eventos após esta página")
