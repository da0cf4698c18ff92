# app/core/security.py
"""
Segurança da identidade dos usuários: hashing de senhas (bcrypt via passlib)
e tokens de acesso JWT (python-jose) usados nas rotas autenticadas.
A assinatura dos QR codes de check-in fica em `app.core.qr`.
"""

# ========================
# --- Importações ---
# ========================
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Union, Optional
from passlib.context import CryptContext
from jose import ExpiredSignatureError, jwt, JWTError
from pydantic import ValidationError

# --- Módulos da Aplicação ---
from app.core.config import settings
from app.models.token import TokenPayload

# ========================
# --- Configuração do Logger ---
# ========================
logger = logging.getLogger(__name__)

# ========================
# --- Configuração Hashing de Senha ---
# ========================
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# ========================
# --- Funções de Senha ---
# ========================
def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verifica se uma senha em texto plano corresponde a um hash armazenado.

    Returns:
        True se a senha corresponder ao hash, False caso contrário
        (inclusive quando o hash está em formato inválido).
    """
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        logger.warning("Tentativa de verificar senha com hash em formato inválido.")
        return False

def get_password_hash(password: str) -> str:
    """Gera um hash bcrypt para a senha fornecida."""
    return pwd_context.hash(password)

# ========================
# --- Funções JWT ---
# ========================
def create_access_token(
    subject: Union[str, Any],
    username: str,
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Cria um token de acesso JWT para o usuário.

    Args:
        subject: ID do usuário (vai na claim 'sub').
        username: Nome de usuário.
        expires_delta: Validade opcional; padrão `ACCESS_TOKEN_EXPIRE_MINUTES`.

    Returns:
        O token JWT codificado.
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode = {
        "exp": datetime.now(timezone.utc) + expires_delta,
        "sub": str(subject),
        "username": username,
    }
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)

def decode_token(token: str) -> Optional[TokenPayload]:
    """
    Decodifica e valida um token de acesso JWT.

    Returns:
        O TokenPayload se o token for válido e não expirado, None caso contrário.
    """
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
        return TokenPayload.model_validate(payload)
    except ExpiredSignatureError:
        logger.info("Token de acesso expirado.")
        return None
    except (JWTError, ValidationError) as e:
        logger.warning(f"Token de acesso inválido: {e}")
        return None
