# app/models/qr.py
"""
Este módulo define os modelos Pydantic do QR code de check-in/check-out:
o payload assinado dentro do token e as estruturas trocadas com os
clientes (app do aluno e leitor da recepção).
"""

# ========================
# --- Importações ---
# ========================
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

# ========================
# --- Constantes ---
# ========================
MAX_SUBJECT_LENGTH = 128
MAX_NAME_LENGTH = 128

# ========================
# --- Payload do Token ---
# ========================
class QRTokenPayload(BaseModel):
    """
    Dados vinculados a um QR code antes da assinatura.

    `iat` e `exp` são milissegundos desde a época Unix. O `nonce` garante que
    dois tokens emitidos no mesmo milissegundo para o mesmo usuário sejam
    diferentes; ele não é usado como chave de replay.
    """
    sub: str = Field(..., min_length=1, max_length=MAX_SUBJECT_LENGTH, title="ID do Usuário (Subject)")
    iat: int = Field(..., ge=0, title="Emitido em (ms)")
    exp: int = Field(..., ge=0, title="Expira em (ms)")
    nonce: str = Field(..., min_length=22, title="Nonce aleatório (base64url)")
    name: Optional[str] = Field(None, max_length=MAX_NAME_LENGTH, title="Nome exibido no leitor")

    model_config = ConfigDict(strict=True, extra="forbid", frozen=True)

    @model_validator(mode='after')
    def check_validity_window(self) -> 'QRTokenPayload':
        """Garante que a janela de validade não é vazia nem invertida."""
        if self.exp <= self.iat:
            raise ValueError("'exp' deve ser posterior a 'iat'.")
        return self

class IssuedQRToken(BaseModel):
    """Token recém-emitido junto com o payload que ele carrega."""
    token: str
    payload: QRTokenPayload

# ========================
# --- Modelos da API ---
# ========================
class QRCodeResponse(BaseModel):
    """Resposta de `/events/qrcode`: o token e a URL a ser desenhada no QR code."""
    token: str = Field(..., title="Token assinado")
    url: str = Field(..., title="URL de check-in com o token")
    expires_at: int = Field(..., title="Expiração do token (ms desde a época)")

class QRVerifyRequest(BaseModel):
    """Conteúdo lido de um QR code: o token puro ou a URL completa."""
    token: Optional[str] = Field(None, title="Token assinado")
    url: Optional[str] = Field(None, title="URL de check-in lida do QR code")

    @model_validator(mode='after')
    def check_token_or_url(self) -> 'QRVerifyRequest':
        if (self.token is None) == (self.url is None):
            raise ValueError("Informe exatamente um entre 'token' e 'url'.")
        return self

class QRVerifyResponse(BaseModel):
    """Identidade vinculada a um QR code válido."""
    user_id: str
    name: Optional[str] = None
    expires_at: int
