# app/db/mongodb_utils.py
"""
Este módulo gerencia a conexão com o banco de dados MongoDB (Motor, assíncrono):
conectar, fechar, obter a instância do banco e checar a conectividade.
"""

# ========================
# --- Importações ---
# ========================
import logging
from typing import Optional
import motor.motor_asyncio
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

# --- Módulos da Aplicação ---
from app.core.config import settings

# ========================
# --- Configuração do Logger ---
# ========================
logger = logging.getLogger(__name__)

# ========================
# --- Variáveis Globais de Conexão ---
# ========================
db_client: Optional[AsyncIOMotorClient] = None
db_instance: Optional[AsyncIOMotorDatabase] = None

# ========================
# --- Função de Conexão ---
# ========================
async def connect_to_mongo() -> Optional[AsyncIOMotorDatabase]:
    """
    Estabelece a conexão com o MongoDB e a verifica com um 'ping'.

    Returns:
        A instância AsyncIOMotorDatabase se a conexão for bem-sucedida, None caso contrário.
    """
    global db_client, db_instance
    logger.info("Tentando conectar ao MongoDB...")
    try:
        db_client = motor.motor_asyncio.AsyncIOMotorClient(
            settings.MONGODB_URL,
            serverSelectionTimeoutMS=5000
        )
        await db_client.admin.command('ping')
        db_instance = db_client[settings.DATABASE_NAME]
        logger.info(f"Conectado com sucesso ao banco de dados: {settings.DATABASE_NAME}")
        return db_instance
    except Exception as e:
        logger.error(f"Não foi possível conectar ao MongoDB: {e}", exc_info=True)
        db_client = None
        db_instance = None
        return None

# ========================
# --- Função de Fechamento de Conexão ---
# ========================
async def close_mongo_connection():
    """Fecha a conexão com o MongoDB, se houver uma aberta."""
    global db_client, db_instance
    if db_client:
        db_client.close()
        logger.info("Conexão com MongoDB fechada.")
    else:
        logger.warning("Tentativa de fechar conexão com MongoDB, mas cliente não estava inicializado.")
    db_client = None
    db_instance = None

# ========================
# --- Função de Acesso ao DB ---
# ========================
def get_database() -> AsyncIOMotorDatabase:
    """
    Retorna a instância global do banco de dados MongoDB.
    Usada como dependência FastAPI.

    Raises:
        RuntimeError: Se chamada antes de `connect_to_mongo` inicializar `db_instance`.
    """
    if db_instance is None:
        logger.error("Tentativa de obter instância do DB antes da inicialização!")
        raise RuntimeError("A conexão com o banco de dados não foi inicializada.")
    return db_instance

# ========================
# --- Checagem de Conectividade ---
# ========================
async def check_mongo_connection() -> bool:
    """
    Verifica se a conexão atual com o MongoDB responde a um 'ping'.

    Returns:
        True se o banco responder, False se não houver conexão ou o comando falhar.
    """
    if db_instance is None:
        return False
    try:
        await db_instance.command("ping")
        return True
    except Exception as e:
        logger.warning(f"Ping ao MongoDB falhou: {e}")
        return False
