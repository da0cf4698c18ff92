# app/routers/auth.py
"""
Rotas de autenticação e conta: registro, login (token JWT), dados do
usuário autenticado e alteração de papel por administradores.
"""

# ========================
# --- Importações ---
# ========================
import uuid
from typing import Annotated

from fastapi import APIRouter, Body, Depends, HTTPException, Path, Response, status
from fastapi.security import OAuth2PasswordRequestForm
from pymongo.errors import DuplicateKeyError

# --- Módulos da Aplicação ---
from app.core.dependencies import CurrentUser, DbDep, require_permission
from app.core.permissions import SET_ROLE, USERS
from app.core.security import create_access_token, verify_password
from app.db import user_crud
from app.models.token import Token
from app.models.user import User, UserCreate, UserInDB, UserRoleUpdate, UserUpdate

# ========================
# --- Configuração do Router ---
# ========================
router = APIRouter(
    tags=["Authentication"],
)

# ========================
# --- Rotas da API ---
# ========================

# --- Endpoint de Registro ---
@router.post(
    "/register",
    response_model=User,
    status_code=status.HTTP_201_CREATED,
    summary="Registra um novo aluno",
    response_description="Dados do usuário recém-registrado (sem senha).",
)
async def register_user(
    db: DbDep,
    user_in: Annotated[UserCreate, Body(description="Dados do novo usuário para registro.")]
):
    """
    Registra um novo usuário com papel `user`.
    Retorna 409 se o username ou o e-mail já existirem.
    """
    if await user_crud.get_user_by_username(db, user_in.username):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"O nome de usuário '{user_in.username}' já existe.",
        )
    if await user_crud.get_user_by_email(db, user_in.email):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"O endereço de e-mail '{user_in.email}' já registrado.",
        )

    try:
        created_user = await user_crud.create_user(db=db, user_in=user_in)
    except DuplicateKeyError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Conflito: nome de usuário ou e-mail já existe (detectado pelo banco de dados).",
        )
    if created_user is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Não foi possível criar o usuário devido a um erro interno no servidor."
        )
    return User.model_validate(created_user.model_dump())

# --- Endpoint de Login ---
@router.post(
    "/login/access-token",
    response_model=Token,
    summary="Autentica o usuário e obtém um token de acesso JWT",
    description="Login padrão OAuth2PasswordRequestForm. Envie 'username' e 'password' como form data.",
)
async def login_for_access_token(
    db: DbDep,
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()]
):
    """Verifica usuário, senha e conta ativa, e devolve um token de acesso."""
    user = await user_crud.get_user_by_username(db, form_data.username)

    if not user or not verify_password(form_data.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Nome de usuário ou senha incorretos.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if user.disabled:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A conta do usuário está inativa."
        )

    access_token = create_access_token(subject=user.id, username=user.username)
    return Token(access_token=access_token, token_type="bearer")

# --- Endpoint de Dados do Usuário Autenticado ---
@router.get(
    "/users/me",
    response_model=User,
    summary="Obtém dados do usuário atualmente autenticado",
)
async def read_users_me(current_user: CurrentUser):
    return User.model_validate(current_user.model_dump())

# --- Endpoint de Atualização do Usuário Autenticado ---
@router.put(
    "/users/me",
    response_model=User,
    summary="Atualiza os dados do usuário atualmente autenticado",
    description="Permite ao usuário autenticado atualizar e-mail, nome completo ou senha.",
)
async def update_current_user(
    db: DbDep,
    user_update_payload: Annotated[UserUpdate, Body(description="Campos do usuário a serem atualizados.")],
    current_user: CurrentUser
):
    try:
        updated_user = await user_crud.update_user(
            db=db,
            user_id=current_user.id,
            user_update=user_update_payload
        )
    except DuplicateKeyError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Não foi possível atualizar: o e-mail '{user_update_payload.email}' já está em uso por outra conta.",
        )
    if updated_user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Não foi possível atualizar o usuário. Usuário não encontrado ou erro interno."
        )
    return User.model_validate(updated_user.model_dump())

# --- Endpoint de Deleção do Usuário Autenticado ---
@router.delete(
    "/users/me",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Deleta a conta do usuário atualmente autenticado",
)
async def delete_current_user(
    db: DbDep,
    current_user: CurrentUser
):
    if not await user_crud.delete_user(db=db, user_id=current_user.id):
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Não foi possível deletar o usuário. Erro interno ou usuário não encontrado."
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)

# --- Endpoint de Alteração de Papel (Admin) ---
@router.patch(
    "/users/{user_id}/role",
    response_model=User,
    summary="Altera o papel de um usuário (somente administradores)",
)
async def update_user_role(
    db: DbDep,
    user_id: Annotated[uuid.UUID, Path(description="ID do usuário a ser alterado.")],
    role_update: Annotated[UserRoleUpdate, Body()],
    admin_user: Annotated[UserInDB, Depends(require_permission(USERS, SET_ROLE))]
):
    """Permite que um administrador promova alunos a staff/coach ou rebaixe papéis."""
    updated_user = await user_crud.set_user_role(db=db, user_id=user_id, role=role_update.role)
    if updated_user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Usuário não encontrado.")
    return User.model_validate(updated_user.model_dump())
