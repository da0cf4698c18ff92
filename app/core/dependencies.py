# app/core/dependencies.py
"""
Dependências reutilizáveis da aplicação FastAPI: banco de dados,
usuário autenticado, checagem de permissões e o assinador de QR codes.
"""

# ========================
# --- Importações ---
# ========================
import logging
import uuid
from typing import Annotated, Callable

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from motor.motor_asyncio import AsyncIOMotorDatabase

# --- Módulos da Aplicação ---
from app.db.mongodb_utils import get_database
from app.core.permissions import has_permission
from app.core.qr import QRSigner
from app.core.security import decode_token
from app.db import user_crud
from app.models.user import UserInDB

# ========================
# --- Configuração do Logger ---
# ========================
logger = logging.getLogger(__name__)

# ========================
# --- Esquema OAuth2 ---
# ========================
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login/access-token")

# ========================
# --- Tipos de Dependência ---
# ========================
DbDep = Annotated[AsyncIOMotorDatabase, Depends(get_database)]
TokenDep = Annotated[str, Depends(oauth2_scheme)]

# ========================
# --- Dependência: Assinador de QR Code ---
# ========================
def get_qr_signer(request: Request) -> QRSigner:
    """
    Retorna o assinador de QR codes criado no startup da aplicação.

    Raises:
        RuntimeError: Se o assinador ainda não foi configurado em `app.state`.
    """
    signer = getattr(request.app.state, "qr_signer", None)
    if signer is None:
        logger.error("Tentativa de usar o assinador de QR code antes da inicialização!")
        raise RuntimeError("O assinador de QR code não foi inicializado.")
    return signer

QRSignerDep = Annotated[QRSigner, Depends(get_qr_signer)]

# ========================
# --- Dependência: Usuário Atual ---
# ========================
async def get_current_user(
    db: DbDep,
    token: TokenDep
) -> UserInDB:
    """
    Obtém o usuário dono do token de acesso enviado no header Authorization.

    Raises:
        HTTPException: Status 401 se o token for inválido ou o usuário não existir.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Não foi possível validar as credenciais",
        headers={"WWW-Authenticate": "Bearer"},
    )

    token_payload = decode_token(token)
    if token_payload is None:
        raise credentials_exception

    user = await user_crud.get_user_by_id(db=db, user_id=uuid.UUID(str(token_payload.sub)))
    if user is None:
        raise credentials_exception
    return user

# ========================
# --- Dependência: Usuário Ativo Atual ---
# ========================
async def get_current_active_user(
    current_user: Annotated[UserInDB, Depends(get_current_user)]
) -> UserInDB:
    """
    Garante que o usuário autenticado não está desativado.

    Raises:
        HTTPException: Status 400 se o usuário estiver desativado.
    """
    if current_user.disabled:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Usuário inativo")
    return current_user

CurrentUser = Annotated[UserInDB, Depends(get_current_active_user)]

# ========================
# --- Dependência: Permissões ---
# ========================
def require_permission(resource: str, action: str) -> Callable:
    """
    Cria uma dependência que exige a permissão `action` sobre `resource`
    para o usuário autenticado.

    Returns:
        Dependência que devolve o usuário ou levanta HTTP 403.
    """
    async def permission_checker(current_user: CurrentUser) -> UserInDB:
        if not has_permission(current_user.role, resource, action):
            logger.warning(
                f"Usuário {current_user.id} (papel '{current_user.role.value}') sem permissão '{resource}:{action}'."
            )
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Permissão negada.")
        return current_user

    return permission_checker
