# app/core/logging_config.py
"""
Configuração de logging da aplicação com Loguru.

Um InterceptHandler redireciona o `logging` padrão do Python (usado pelos
módulos da aplicação, Uvicorn e demais bibliotecas) para o Loguru. As
mensagens passam por um patcher que mascara tokens de QR code em URLs,
para que nenhum token válido apareça nos logs.
"""

# ========================
# --- Importações ---
# ========================
import logging
import re
import sys
from loguru import logger as loguru_logger

# ========================
# --- Mascaramento de Tokens ---
# ========================
_TOKEN_PARAM_RE = re.compile(r"([?&]token=)[^&\s\"']+")

def mask_tokens(message: str) -> str:
    """Substitui o valor de parâmetros `token=` em URLs por `***`."""
    return _TOKEN_PARAM_RE.sub(r"\1***", message)

def _patch_record(record) -> None:
    record["message"] = mask_tokens(record["message"])

# ========================
# --- Handler de Intercepção ---
# ========================
class InterceptHandler(logging.Handler):
    """Handler do `logging` que repassa cada registro para o Loguru."""
    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = loguru_logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while hasattr(frame, "f_code") and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back # pragma: no cover
            if frame is None: # pragma: no cover
                break # pragma: no cover
            depth += 1 # pragma: no cover

        loguru_logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())

# ========================
# --- Função de Setup ---
# ========================
def setup_logging(log_level: str = "INFO"):
    """
    Configura o logging global da aplicação.

    - Substitui os handlers do Loguru por um único sink em `sys.stderr`.
    - Aplica o mascaramento de tokens a todas as mensagens.
    - Faz o `logging` padrão (inclusive Uvicorn) passar pelo InterceptHandler.

    Args:
        log_level: Nível mínimo de log (ex: "INFO", "DEBUG").
    """
    log_level = log_level.upper()

    loguru_logger.remove()
    loguru_logger.configure(patcher=_patch_record)
    loguru_logger.add(
        sys.stderr,
        level=log_level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        enqueue=True,
        diagnose=False
    )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    # Logs de acesso do Uvicorn passam pelo Loguru (e pelo mascaramento) em vez de irem direto ao console
    for name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers = [InterceptHandler()]
        uvicorn_logger.propagate = False

    loguru_logger.disable("httpx")
