# app/db/event_crud.py
"""
Funções de acesso à coleção de eventos de check-in/check-out no MongoDB.
"""

# ========================
# --- Importações ---
# ========================
import logging
from typing import Any, Dict, List, Optional
from motor.motor_asyncio import AsyncIOMotorDatabase, AsyncIOMotorCollection
from pymongo import ASCENDING, DESCENDING
from pydantic import ValidationError

# --- Módulos da Aplicação ---
from app.db.user_crud import USERS_COLLECTION
from app.models.event import Event, EventList, EventWithDetails

# ========================
# --- Configurações e Constantes ---
# ========================
logger = logging.getLogger(__name__)
EVENTS_COLLECTION = "events"

# ========================
# --- Funções Auxiliares (Internas) ---
# ========================
def _get_events_collection(db: AsyncIOMotorDatabase) -> AsyncIOMotorCollection:
    """Retorna a coleção de eventos do banco de dados."""
    return db[EVENTS_COLLECTION]

def _list_pipeline(query: Dict[str, Any], offset: int, limit: int) -> List[Dict[str, Any]]:
    """Agregação da listagem: filtra, ordena, pagina e só então junta o aluno de cada evento."""
    return [
        {"$match": query},
        {"$sort": {"created_at": DESCENDING}},
        {"$skip": offset},
        {"$limit": limit + 1},
        {
            "$lookup": {
                "from": USERS_COLLECTION,
                "let": {"user_id": "$user_id"},
                "pipeline": [
                    {"$match": {"$expr": {"$eq": ["$id", "$$user_id"]}}},
                    {"$project": {"_id": 0, "full_name": 1, "username": 1}},
                ],
                "as": "user_docs",
            }
        },
    ]

def _display_name(user_doc: Dict[str, Any]) -> Optional[str]:
    return user_doc.get("full_name") or user_doc.get("username")

# ========================
# --- Operações CRUD para Eventos ---
# ========================
async def create_event(db: AsyncIOMotorDatabase, event: Event) -> Optional[Event]:
    """
    Persiste um evento já validado.

    Returns:
        O Event gravado, ou None em caso de erro.
    """
    collection = _get_events_collection(db)
    try:
        insert_result = await collection.insert_one(event.model_dump(mode="json"))
        if insert_result.acknowledged:
            return event
        logger.warning(f"Gravação do evento {event.id} não foi reconhecida pelo DB (acknowledged=False).") # pragma: no cover
        return None # pragma: no cover
    except Exception as e:
        logger.exception(f"DB Error creating event for user {event.user_id}: {e}")
        return None

async def list_events(
    db: AsyncIOMotorDatabase,
    *,
    user_id: Optional[str] = None,
    offset: int = 0,
    limit: int = 20
) -> EventList:
    """
    Lista eventos do mais recente para o mais antigo, com paginação por offset.

    Busca `limit + 1` documentos para saber se existe uma próxima página e,
    na mesma agregação, junta o nome de exibição do aluno (`$lookup` em `users`).

    Args:
        db: Instância da conexão com o banco de dados.
        user_id: Se informado, restringe aos eventos desse aluno.
        offset: Quantos eventos pular.
        limit: Tamanho máximo da página.

    Returns:
        EventList com os eventos da página e `has_more`. Página vazia em caso de erro.
    """
    collection = _get_events_collection(db)
    query: Dict[str, Any] = {}
    if user_id is not None:
        query["user_id"] = user_id

    events = []
    try:
        cursor = collection.aggregate(_list_pipeline(query, offset, limit))
        async for event_dict in cursor:
            event_dict.pop('_id', None)
            user_docs = event_dict.pop('user_docs', None) or []
            name = _display_name(user_docs[0]) if user_docs else None
            if name:
                event_dict["user"] = {"name": name}
            try:
                events.append(EventWithDetails.model_validate(event_dict))
            except ValidationError as e:
                logger.error(f"DB Validation error list_events event {event_dict.get('id', 'N/A')}: {e}")
                continue
    except Exception as e:
        logger.exception(f"DB Error listing events (user_id={user_id}): {e}")
        return EventList(events=[], has_more=False)

    return EventList(events=events[:limit], has_more=len(events) > limit)

# ========================
# --- Configuração de Índices do Banco de Dados ---
# ========================
async def create_event_indexes(db: AsyncIOMotorDatabase):
    """Cria os índices usados pelas listagens de eventos."""
    collection = _get_events_collection(db)
    try:
        await collection.create_index([("created_at", DESCENDING)], name="created_at_desc_idx")
        await collection.create_index(
            [("user_id", ASCENDING), ("created_at", DESCENDING)],
            name="user_created_at_idx"
        )
        logger.info("Índices da coleção 'events' verificados/criados com sucesso.")
    except Exception as e:
        logger.error(f"Erro ao criar índices para a coleção 'events': {e}", exc_info=True)
