# app/main.py
"""
Ponto de entrada da API GymEmbrace.
Define a instância FastAPI, middlewares, rotas e o ciclo de vida (lifespan),
onde o assinador de QR codes é criado a partir da configuração.
"""

# ========================
# --- Importações ---
# ========================
import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

# --- Módulos da Aplicação ---
from app.routers import auth, events, health
from app.db.mongodb_utils import connect_to_mongo, close_mongo_connection
from app.db.user_crud import create_user_indexes
from app.db.event_crud import create_event_indexes
from app.core.config import Settings, settings
from app.core.logging_config import setup_logging
from app.core.qr import ConfigurationError, QRSigner

# ========================
# --- Configuração de Logging ---
# ========================
setup_logging(log_level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

# ========================
# --- Função de Setup do Middleware CORS ---
# ========================
def _setup_cors_middleware(app_instance: FastAPI, current_settings: Settings):
    """Configura o middleware CORS para a aplicação."""
    if current_settings.CORS_ALLOWED_ORIGINS:
        logger.info(f"Configurando CORS para origens: {current_settings.CORS_ALLOWED_ORIGINS}")
        app_instance.add_middleware(
            CORSMiddleware,
            allow_origins=current_settings.CORS_ALLOWED_ORIGINS,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    else:
        logger.warning(
            "Nenhuma origem CORS configurada (settings.CORS_ALLOWED_ORIGINS está vazia). "
            "API pode não ser acessível de frontends em outros domínios."
        )

# ========================
# --- Ciclo de Vida (Lifespan) ---
# ========================
def build_qr_signer(current_settings: Settings) -> QRSigner:
    """
    Cria o assinador de QR codes. Uma configuração inválida impede o startup.

    Raises:
        ConfigurationError: Se `QR_SIGNING_SECRET` estiver ausente ou inválido.
    """
    try:
        signer = QRSigner.from_settings(current_settings)
    except ConfigurationError as e:
        logger.critical(f"Configuração do QR code inválida, a aplicação não será iniciada: {e}")
        raise
    logger.info(f"Assinador de QR code pronto (validade de {current_settings.QR_TOKEN_TTL_SECONDS}s).")
    return signer

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: cria o assinador de QR codes, conecta ao MongoDB e cria índices.
    Shutdown: fecha a conexão com o MongoDB.
    """
    logger.info("Iniciando ciclo de vida da aplicação...")
    app.state.qr_signer = build_qr_signer(settings)

    db_connection = await connect_to_mongo()
    if db_connection is None:
        logger.critical("Falha fatal ao conectar ao MongoDB na inicialização. App pode não funcionar corretamente.")
    else:
        try:
            await create_user_indexes(db_connection)
            await create_event_indexes(db_connection)
        except Exception as e:
            logger.error(f"Erro durante a criação de índices: {e}", exc_info=True)

    logger.info("Aplicação iniciada e pronta.") # pragma: no cover
    yield # pragma: no cover

    logger.info("Iniciando processo de encerramento...")
    await close_mongo_connection()
    app.state.qr_signer = None
    logger.info("Aplicação encerrada.")

# ========================
# --- Instância FastAPI ---
# ========================
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="API de check-in/check-out por QR code assinado para academias.",
    version="0.1.0",
    license_info={
        "name": "MIT License",
        "url": "https://opensource.org/licenses/MIT",
    },
    lifespan=lifespan
)

# ========================
# --- Configuração de Middlewares ---
# ========================
_setup_cors_middleware(app, settings)

# ========================
# --- Rotas (Routers) ---
# ========================
app.include_router(auth.router, prefix=settings.API_V1_STR + "/auth", tags=["Authentication"])
app.include_router(events.router, prefix=settings.API_V1_STR)
app.include_router(health.router)

# ========================
# --- Endpoint Raiz ---
# ========================
@app.get("/", tags=["Root"])
async def read_root():
    """Endpoint raiz para verificar se a API está online."""
    return {"message": f"Bem-vindo à {settings.PROJECT_NAME}!"}

# ========================
# --- Execução (Uvicorn) ---
# ========================
if __name__ == "__main__": # pragma: no cover
    import uvicorn # pragma: no cover
    uvicorn.run( # pragma: no cover
        "app.main:app", # pragma: no cover
        host="0.0.0.0", # pragma: no cover
        port=8000, # pragma: no cover
        reload=True, # pragma: no cover
        log_level=settings.LOG_LEVEL.lower() # pragma: no cover
    )
