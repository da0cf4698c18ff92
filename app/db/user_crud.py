# app/db/user_crud.py
"""
Funções de acesso à coleção de usuários no MongoDB: busca, criação,
atualização, alteração de papel, remoção e criação de índices.
"""

# ========================
# --- Importações ---
# ========================
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from motor.motor_asyncio import AsyncIOMotorDatabase, AsyncIOMotorCollection
from pydantic import ValidationError
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

# --- Módulos da Aplicação ---
from app.models.user import UserCreate, UserInDB, UserRole, UserUpdate
from app.core.security import get_password_hash

# ========================
# --- Configurações e Constantes ---
# ========================
logger = logging.getLogger(__name__)
USERS_COLLECTION = "users"

# ========================
# --- Funções Auxiliares (Internas) ---
# ========================
def _get_users_collection(db: AsyncIOMotorDatabase) -> AsyncIOMotorCollection:
    """Retorna a coleção de usuários do banco de dados."""
    return db[USERS_COLLECTION]

def _to_user(user_dict: Optional[Dict[str, Any]], context: str) -> Optional[UserInDB]:
    """Converte um documento do MongoDB em UserInDB, ou None se inválido/ausente."""
    if not user_dict:
        return None
    user_dict.pop('_id', None)
    try:
        return UserInDB.model_validate(user_dict)
    except ValidationError as e:
        logger.error(f"DB Validation error {context}: {e}")
        return None

# ========================
# --- Operações CRUD para Usuários ---
# ========================
async def get_user_by_id(db: AsyncIOMotorDatabase, user_id: uuid.UUID) -> Optional[UserInDB]:
    """Busca um usuário pelo seu ID (UUID)."""
    collection = _get_users_collection(db)
    user_dict = await collection.find_one({"id": str(user_id)})
    return _to_user(user_dict, f"get_user_by_id {user_id}")

async def get_user_by_username(db: AsyncIOMotorDatabase, username: str) -> Optional[UserInDB]:
    """Busca um usuário pelo seu nome de usuário."""
    collection = _get_users_collection(db)
    user_dict = await collection.find_one({"username": username})
    return _to_user(user_dict, f"get_user_by_username {username}")

async def get_user_by_email(db: AsyncIOMotorDatabase, email: str) -> Optional[UserInDB]:
    """Busca um usuário pelo seu endereço de e-mail."""
    collection = _get_users_collection(db)
    user_dict = await collection.find_one({"email": email})
    return _to_user(user_dict, f"get_user_by_email {email}")

async def create_user(db: AsyncIOMotorDatabase, user_in: UserCreate) -> Optional[UserInDB]:
    """
    Cria um novo usuário com papel `user`.

    Gera o UUID, hasheia a senha e preenche os campos padrão.

    Returns:
        O UserInDB criado, ou None em caso de erro inesperado.

    Raises:
        DuplicateKeyError: Se username ou e-mail já existirem (índices únicos).
    """
    user_db_obj = UserInDB(
        id=uuid.uuid4(),
        username=user_in.username,
        email=user_in.email,
        hashed_password=get_password_hash(user_in.password),
        full_name=user_in.full_name,
        role=UserRole.USER,
        disabled=False,
        created_at=datetime.now(timezone.utc),
        updated_at=None,
    )
    collection = _get_users_collection(db)

    try:
        insert_result = await collection.insert_one(user_db_obj.model_dump(mode="json"))
        if not insert_result.acknowledged: # pragma: no cover
            logger.error(f"DB Insert User Acknowledged False for username {user_in.username}")
            return None
        return user_db_obj
    except DuplicateKeyError:
        logger.warning(f"Tentativa de criar usuário com username ou email duplicado: {user_in.username} / {user_in.email}")
        raise
    except Exception as e:
        logger.exception(f"Erro inesperado ao inserir usuário {user_in.username} no DB: {e}")
        return None

async def _update_fields(db: AsyncIOMotorDatabase, user_id: uuid.UUID, update_data: Dict[str, Any]) -> Optional[UserInDB]:
    """Aplica `$set` com `update_data` (mais `updated_at`) e devolve o usuário atualizado."""
    collection = _get_users_collection(db)
    update_data["updated_at"] = datetime.now(timezone.utc)
    updated_doc = await collection.find_one_and_update(
        {"id": str(user_id)},
        {"$set": update_data},
        return_document=ReturnDocument.AFTER
    )
    if updated_doc is None:
        logger.warning(f"Attempt to update user not found: ID {user_id}")
    return _to_user(updated_doc, f"after updating user {user_id}")

async def update_user(db: AsyncIOMotorDatabase, user_id: uuid.UUID, user_update: UserUpdate) -> Optional[UserInDB]:
    """
    Atualiza os dados informados de um usuário existente.
    Se a senha vier no payload, ela é hasheada antes de salvar.

    Returns:
        O UserInDB atualizado, ou None se não encontrado ou em caso de erro.

    Raises:
        DuplicateKeyError: Se o novo e-mail já pertencer a outro usuário.
    """
    update_data = user_update.model_dump(exclude_unset=True, exclude_none=True)
    if "password" in update_data:
        update_data["hashed_password"] = get_password_hash(update_data.pop("password"))

    try:
        return await _update_fields(db, user_id, update_data)
    except DuplicateKeyError:
        logger.warning(f"DB Error: Attempt to update user {user_id} resulted in duplicate key.")
        raise
    except Exception as e:
        logger.exception(f"DB Error updating user {user_id}: {e}")
        return None

async def set_user_role(db: AsyncIOMotorDatabase, user_id: uuid.UUID, role: UserRole) -> Optional[UserInDB]:
    """
    Altera o papel de um usuário.

    Returns:
        O UserInDB atualizado, ou None se não encontrado ou em caso de erro.
    """
    try:
        updated = await _update_fields(db, user_id, {"role": role.value})
        if updated is not None:
            logger.info(f"Papel do usuário {user_id} alterado para '{role.value}'.")
        return updated
    except Exception as e:
        logger.exception(f"DB Error setting role for user {user_id}: {e}")
        return None

async def delete_user(db: AsyncIOMotorDatabase, user_id: uuid.UUID) -> bool:
    """
    Remove um usuário pelo seu ID.

    Returns:
        True se exatamente um documento foi removido, False caso contrário.
    """
    collection = _get_users_collection(db)
    try:
        delete_result = await collection.delete_one({"id": str(user_id)})
        if delete_result.deleted_count == 1:
            logger.info(f"User {user_id} deleted successfully.")
            return True
        logger.warning(f"Attempt to delete user {user_id}, but user was not found (deleted_count: {delete_result.deleted_count}).")
        return False
    except Exception as e:
        logger.exception(f"DB Error deleting user {user_id}: {e}")
        return False

# ========================
# --- Configuração de Índices do Banco de Dados ---
# ========================
async def create_user_indexes(db: AsyncIOMotorDatabase):
    """Cria os índices únicos de `id`, `username` e `email` na coleção de usuários."""
    collection = _get_users_collection(db)
    try:
        await collection.create_index("id", unique=True, name="id_unique_idx")
        await collection.create_index("username", unique=True, name="username_unique_idx")
        await collection.create_index("email", unique=True, name="email_unique_idx")
        logger.info("Índices da coleção 'users' verificados/criados com sucesso.")
    except Exception as e:
        logger.error(f"Erro ao criar índices para a coleção 'users': {e}", exc_info=True)
