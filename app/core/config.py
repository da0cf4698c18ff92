# app/core/config.py

# ========================
# --- Importações ---
# ========================
import os
import logging
from typing import Optional, List
from pydantic_settings import BaseSettings
from pydantic import Field, ValidationError, model_validator, HttpUrl
from dotenv import load_dotenv

# --- Módulos da Aplicação ---
from app.core.qr import ConfigurationError, decode_signing_secret

# ===============================
# --- Configuração do Logger ---
# ===============================
logger = logging.getLogger(__name__)

# ===============================
# --- Carregamento do .env ---
# ===============================
# Define o caminho para o arquivo .env na raiz do projeto
dotenv_path = os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(__file__))), '.env')
# Carrega as variáveis do arquivo .env para o ambiente, se o arquivo existir
loaded = load_dotenv(dotenv_path=dotenv_path)

# ======================================
# --- Definição das Configurações ---
# ======================================
class Settings(BaseSettings):
    """
    Configurações da aplicação lidas do ambiente usando Pydantic BaseSettings.
    Procura variáveis de ambiente ou variáveis em um arquivo .env.
    Docs Pydantic Settings: https://docs.pydantic.dev/latest/concepts/pydantic_settings/
    """
    # =========================
    # --- Config Gerais ---
    # =========================
    PROJECT_NAME: str = Field("GymEmbrace API", description="Nome do Projeto")
    API_V1_STR: str = Field("/api/v1", description="Prefixo para a versão 1 da API")

    # =============================
    # --- Configurações MongoDB ---
    # =============================
    MONGODB_URL: str = Field(..., description="URL de conexão completa do MongoDB (obrigatória)")
    DATABASE_NAME: str = Field("gymembrace_db", description="Nome do banco de dados MongoDB")

    # ===========================
    # --- Configurações JWT ---
    # ===========================
    JWT_SECRET_KEY: str = Field(..., description="Chave secreta forte para assinar tokens JWT (obrigatória)")
    JWT_ALGORITHM: str = Field("HS256", description="Algoritmo de assinatura JWT")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(60 * 24 * 7, description="Validade do token de acesso em minutos (padrão: 7 dias)")

    # ==================================
    # --- Configurações do QR Code ---
    # ==================================
    QR_SIGNING_SECRET: Optional[str] = Field(
        default=None,
        description=(
            "Segredo HMAC-SHA256 codificado em base64 usado para assinar os QR codes de check-in. "
            "Sem ele a aplicação não inicia."
        )
    )
    QR_TOKEN_TTL_SECONDS: int = Field(
        default=15,
        gt=0,
        description="Janela de validade (em segundos) de um QR code emitido."
    )
    QR_CLOCK_LEEWAY_SECONDS: int = Field(
        default=0,
        ge=0,
        description="Tolerância (em segundos) para diferença de relógio entre quem emite e quem lê o QR code."
    )
    QR_CHECKIN_BASE_URL: str = Field(
        default="https://gymembrace.app/checkin",
        description="URL base embutida no QR code; o token vai no parâmetro 'token'."
    )

    # ==============================
    # --- Configuração Webhook ---
    # ==============================
    WEBHOOK_URL: Optional[HttpUrl] = Field(
        default=None,
        description="URL opcional para notificar painéis sobre novos eventos de check-in/check-out."
    )
    WEBHOOK_SECRET: Optional[str] = Field(
        default=None,
        description="Segredo opcional usado para assinar payloads de webhook para verificação (HMAC-SHA256)."
    )

    # ===============================
    # --- Configuração de Logging ---
    # ===============================
    LOG_LEVEL: str = Field(default="INFO", description="Nível de log (DEBUG, INFO, WARNING, ERROR, CRITICAL)")

    # ===================================
    # --- Configurações CORS ---
    # ===================================
    # A conversão de string separada por vírgula para List[str] é feita automaticamente pelo Pydantic v2
    CORS_ALLOWED_ORIGINS: List[str] = Field(default=[], description="Lista de origens CORS permitidas (separadas por vírgula no .env)")


    # ====================================================
    # --- Configuração do Modelo Pydantic BaseSettings ---
    # ====================================================
    model_config = {
        "case_sensitive": False,
    }

    # ===============================
    # --- Validadores ---
    # ===============================
    @model_validator(mode='after')
    def check_qr_secret_encoding(self) -> 'Settings':
        """Valida que o segredo do QR code, se informado, está em base64."""
        if self.QR_SIGNING_SECRET is not None:
            try:
                decode_signing_secret(self.QR_SIGNING_SECRET)
            except ConfigurationError as e:
                raise ValueError(str(e))
        return self

    @model_validator(mode='after')
    def check_webhook_config(self) -> 'Settings':
        """Avisa quando há segredo de webhook sem URL configurada."""
        if self.WEBHOOK_SECRET and not self.WEBHOOK_URL:
            # Usar warning em vez de raise para não impedir start da app.
            logger.warning("WEBHOOK_SECRET definido, mas WEBHOOK_URL está vazio. Nenhum webhook será enviado.")
        return self

# ================================
# --- Criação da Instância ---
# ================================
try:
    # Pydantic BaseSettings lê do ambiente ou .env na instanciação
    settings = Settings()
except ValidationError as e:
    # Captura erros de validação do Pydantic (campos obrigatórios faltando, tipos inválidos)
    logger.critical(f"Erro fatal de validação ao carregar configurações: {e}")
    raise e
except Exception as e:
    # Captura outros erros inesperados
    logger.critical(f"Erro inesperado ao carregar configurações: {e}", exc_info=True)
    raise e
