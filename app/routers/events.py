# app/routers/events.py
"""
Rotas do fluxo de check-in/check-out por QR code.

O aluno autenticado pede um QR code de validade curta (`/events/qrcode`);
a recepção lê o código e o envia para `/events/verify` (pré-visualização)
ou `/events/new` (registro do evento). Qualquer falha na verificação do
QR code gera a mesma resposta genérica, sem indicar qual checagem falhou.
"""

# ========================
# --- Importações ---
# ========================
import logging
import uuid
from typing import Annotated, Optional

from fastapi import APIRouter, BackgroundTasks, Body, Depends, HTTPException, Query, Response, status

# --- Módulos da Aplicação ---
from app.core.config import settings
from app.core.dependencies import CurrentUser, DbDep, QRSignerDep, require_permission
from app.core.permissions import CREATE, EVENTS, READ, READ_OWN
from app.core.qr import QRSigner, QRTokenError, build_checkin_url, extract_token
from app.core.utils import send_webhook_notification
from app.db import event_crud, user_crud
from app.models.event import Event, EventCreate, EventList
from app.models.qr import QRCodeResponse, QRTokenPayload, QRVerifyRequest, QRVerifyResponse
from app.models.user import UserInDB

# ========================
# --- Configurações e Constantes ---
# ========================
logger = logging.getLogger(__name__)

QR_REJECTION_MESSAGE = "Código QR inválido ou expirado. Atualize o código e tente novamente."

# ========================
# --- Configuração do Router ---
# ========================
router = APIRouter(
    prefix="/events",
    tags=["Events"],
    responses={
        status.HTTP_401_UNAUTHORIZED: {"description": "Não autorizado (token de acesso inválido, ausente ou expirado)."},
        status.HTTP_403_FORBIDDEN: {"description": "Usuário sem permissão para esta operação."},
    },
)

# ========================
# --- Funções Auxiliares ---
# ========================
def _verify_scanned_code(signer: QRSigner, token: Optional[str], url: Optional[str]) -> QRTokenPayload:
    """
    Verifica o conteúdo lido de um QR code (token puro ou URL).

    Raises:
        HTTPException: 400 com mensagem genérica para qualquer falha de verificação.
    """
    try:
        return signer.verify_payload(token if token is not None else extract_token(url))
    except QRTokenError as e:
        logger.info(f"Leitura de QR code rejeitada ({type(e).__name__}).")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=QR_REJECTION_MESSAGE)

# ========================
# --- Endpoint: Emitir QR Code ---
# ========================
@router.get(
    "/qrcode",
    response_model=QRCodeResponse,
    summary="Emite um QR code de check-in para o usuário autenticado",
    description=(
        "Gera um token assinado válido por alguns segundos e a URL de check-in que o contém. "
        "O cliente deve renovar o código periodicamente."
    ),
)
async def issue_qrcode(
    response: Response,
    current_user: CurrentUser,
    signer: QRSignerDep
):
    response.headers["Cache-Control"] = "no-store"
    issued = signer.issue_token(str(current_user.id), name=current_user.display_name)
    return QRCodeResponse(
        token=issued.token,
        url=build_checkin_url(settings.QR_CHECKIN_BASE_URL, issued.token),
        expires_at=issued.payload.exp,
    )

# ========================
# --- Endpoint: Verificar QR Code ---
# ========================
@router.post(
    "/verify",
    response_model=QRVerifyResponse,
    summary="Verifica um QR code lido e retorna o aluno vinculado",
    responses={status.HTTP_400_BAD_REQUEST: {"description": QR_REJECTION_MESSAGE}},
)
async def verify_qrcode(
    scanned: Annotated[QRVerifyRequest, Body(description="Token ou URL lidos do QR code.")],
    signer: QRSignerDep,
    staff_user: Annotated[UserInDB, Depends(require_permission(EVENTS, CREATE))]
):
    """Permite à recepção conferir quem é o aluno antes de registrar o evento."""
    payload = _verify_scanned_code(signer, scanned.token, scanned.url)
    return QRVerifyResponse(user_id=payload.sub, name=payload.name, expires_at=payload.exp)

# ========================
# --- Endpoint: Registrar Evento ---
# ========================
@router.post(
    "/new",
    response_model=Event,
    status_code=status.HTTP_201_CREATED,
    summary="Registra um check-in ou check-out a partir de um QR code",
    responses={status.HTTP_400_BAD_REQUEST: {"description": QR_REJECTION_MESSAGE}},
)
async def create_event(
    event_in: Annotated[EventCreate, Body(description="Tipo do evento, sala e conteúdo do QR code.")],
    db: DbDep,
    signer: QRSignerDep,
    background_tasks: BackgroundTasks,
    staff_user: Annotated[UserInDB, Depends(require_permission(EVENTS, CREATE))]
):
    """
    Fluxo de execução:
    1. Verifica o QR code (400 genérico em qualquer falha).
    2. Confirma que o aluno vinculado existe e está ativo.
    3. Grava o evento e agenda a notificação via webhook.
    """
    payload = _verify_scanned_code(signer, event_in.token, event_in.url)

    try:
        user_uuid = uuid.UUID(payload.sub)
    except ValueError:
        user_uuid = None
    member = await user_crud.get_user_by_id(db, user_uuid) if user_uuid else None
    if member is None or member.disabled:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Aluno do QR code não encontrado ou inativo.",
        )

    event = Event(
        user_id=payload.sub,
        room_id=event_in.room_id,
        mode=event_in.mode,
        recorded_by=str(staff_user.id),
    )
    created = await event_crud.create_event(db, event)
    if created is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Não foi possível registrar o evento devido a um erro interno.",
        )

    logger.info(f"Evento '{created.mode.value}' registrado para o aluno {created.user_id} na sala {created.room_id}.")
    background_tasks.add_task(
        send_webhook_notification,
        f"event.{created.mode.value}",
        created.model_dump(mode="json"),
    )
    return created

# ========================
# --- Endpoints: Listagem ---
# ========================
@router.get(
    "/list",
    response_model=EventList,
    summary="Lista todos os eventos (mais recentes primeiro)",
)
async def list_events(
    db: DbDep,
    reader: Annotated[UserInDB, Depends(require_permission(EVENTS, READ))],
    offset: Annotated[int, Query(ge=0, description="Quantos eventos pular.")] = 0,
    limit: Annotated[int, Query(ge=1, le=100, description="Tamanho da página.")] = 20,
):
    return await event_crud.list_events(db, offset=offset, limit=limit)

@router.get(
    "/list/own",
    response_model=EventList,
    summary="Lista os eventos do usuário autenticado",
)
async def list_own_events(
    db: DbDep,
    reader: Annotated[UserInDB, Depends(require_permission(EVENTS, READ_OWN))],
    offset: Annotated[int, Query(ge=0, description="Quantos eventos pular.")] = 0,
    limit: Annotated[int, Query(ge=1, le=100, description="Tamanho da página.")] = 20,
):
    return await event_crud.list_events(db, user_id=str(reader.id), offset=offset, limit=limit)
