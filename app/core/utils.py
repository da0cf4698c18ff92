# app/core/utils.py
"""
Funções utilitárias da aplicação. Hoje contém o envio de notificações via
webhook quando um check-in/check-out é registrado, para que painéis
externos atualizem a lista de atividades.
"""

# ========================
# --- Importações ---
# ========================
import json
import hmac
import hashlib
import logging
from datetime import datetime, timezone
from typing import Any, Dict

import httpx

# --- Módulos da Aplicação ---
from app.core.config import settings

# ========================
# --- Configuração do Logger ---
# ========================
logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-GymEmbrace-Signature"

# ========================
# --- Assinatura do Webhook ---
# ========================
def sign_webhook_payload(payload: Dict[str, Any], secret: str) -> str:
    """Calcula o header de assinatura `sha256=<hex>` sobre o JSON canônico do payload."""
    payload_bytes = json.dumps(payload, separators=(',', ':'), sort_keys=True).encode('utf-8')
    signature = hmac.new(secret.encode('utf-8'), payload_bytes, hashlib.sha256).hexdigest()
    return f"sha256={signature}"

# ========================
# --- Função de Envio de Webhook ---
# ========================
async def send_webhook_notification(
    event_type: str,
    event_data: Dict[str, Any]
):
    """
    Envia uma notificação via webhook para a URL configurada.

    Inclui assinatura HMAC-SHA256 se WEBHOOK_SECRET estiver definido.
    Falhas são apenas registradas no log: o evento já foi gravado.

    Args:
        event_type: Tipo do evento (ex: 'event.check-in').
        event_data: Dados do evento, já serializáveis em JSON.
    """
    if not settings.WEBHOOK_URL:
        logger.debug("Webhook URL não configurada, pulando envio.")
        return

    webhook_url_str = str(settings.WEBHOOK_URL)
    payload = {
        "event": event_type,
        "data": event_data,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }
    headers = {
        "Content-Type": "application/json",
        "User-Agent": "GymEmbrace-Webhook-Client/1.0"
    }
    if settings.WEBHOOK_SECRET:
        headers[SIGNATURE_HEADER] = sign_webhook_payload(payload, settings.WEBHOOK_SECRET)

    try:
        async with httpx.AsyncClient() as client:
            logger.info(f"Enviando webhook evento '{event_type}' para {webhook_url_str}")
            response = await client.post(
                webhook_url_str,
                content=json.dumps(payload, separators=(',', ':'), sort_keys=True),
                headers=headers,
                timeout=10.0
            )
            response.raise_for_status()
            logger.info(f"Webhook enviado com sucesso para {webhook_url_str}. Status: {response.status_code}")
    except httpx.TimeoutException:
        logger.error(f"Timeout ao enviar webhook para {webhook_url_str}")
    except httpx.HTTPStatusError as exc:
        logger.error(
            f"Erro no servidor do webhook ({webhook_url_str}). "
            f"Status: {exc.response.status_code}. Resposta: {exc.response.text[:200]}..."
        )
    except httpx.RequestError as exc:
        logger.error(f"Erro na requisição ao enviar webhook para {webhook_url_str}: {exc}")
