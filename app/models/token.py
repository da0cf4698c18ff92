# app/models/token.py
"""
Modelos Pydantic do token de acesso (JWT) usado para autenticar as
requisições à API. Não confundir com o token do QR code (`app.models.qr`).
"""

# ========================
# --- Importações ---
# ========================
import uuid
from typing import Optional

from pydantic import BaseModel, Field

# ========================
# --- Modelos Pydantic Token ---
# ========================
class Token(BaseModel):
    """Resposta do login: o token de acesso e seu tipo."""
    access_token: str = Field(..., title="Token de Acesso JWT")
    token_type: str = Field(default="bearer", title="Tipo do Token")

class TokenPayload(BaseModel):
    """Claims decodificadas de um token de acesso."""
    sub: uuid.UUID = Field(..., title="ID do Usuário (Subject)")
    username: str = Field(..., title="Nome de Usuário")
    exp: Optional[int] = Field(None, title="Timestamp de Expiração")
