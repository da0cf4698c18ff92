# app/routers/health.py

# ========================
# --- Importações ---
# ========================
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from app.db.mongodb_utils import check_mongo_connection


# ========================
# --- Configuração do Router ---
# ========================
router = APIRouter()


# ========================
# --- Rotas da API ---
# ========================
@router.get("/health", tags=["Health"])
async def health_check(request: Request):
    # Sem assinador não há como emitir nem verificar QR codes
    if getattr(request.app.state, "qr_signer", None) is None:
        return JSONResponse(content={"status": "error", "message": "Assinador de QR code não configurado"}, status_code=503)

    if not await check_mongo_connection():
        return JSONResponse(content={"status": "error", "message": "MongoDB não está disponível"}, status_code=503)

    return JSONResponse(content={"status": "ok"})
