# app/core/qr.py
"""
Emissão e verificação dos QR codes de check-in/check-out.

Um token tem o formato `<payload>.<assinatura>`, ambos em base64url sem
padding. A assinatura é um HMAC-SHA256 calculado sobre os bytes ASCII do
primeiro segmento exatamente como transmitido. A verificação não guarda
estado: depende apenas do token, da chave e do relógio.
"""

# ========================
# --- Importações ---
# ========================
import base64
import binascii
import hashlib
import hmac
import json
import logging
import re
import secrets
import time
from typing import Any, Callable, Optional
from urllib.parse import parse_qs, urlencode, urlsplit, urlunsplit

from pydantic import ValidationError

# --- Módulos da Aplicação ---
from app.models.qr import MAX_NAME_LENGTH, MAX_SUBJECT_LENGTH, IssuedQRToken, QRTokenPayload

# ========================
# --- Configuração do Logger ---
# ========================
logger = logging.getLogger(__name__)

# ========================
# --- Constantes ---
# ========================
DEFAULT_TTL_MS = 15_000
NONCE_BYTES = 16
MIN_KEY_BYTES = 16
MAX_TOKEN_LENGTH = 4096
TOKEN_QUERY_PARAM = "token"

_B64URL_SEGMENT = re.compile(r"[A-Za-z0-9_-]+")

# ========================
# --- Exceções ---
# ========================
class QRTokenError(Exception):
    """Base dos erros de verificação de um QR code. Nunca deve ser repetida a verificação."""

class MalformedToken(QRTokenError):
    """Token estruturalmente inválido (segmentos, base64 ou payload)."""

class InvalidSignature(QRTokenError):
    """Token bem formado cuja assinatura não confere."""

class Expired(QRTokenError):
    """Assinatura válida, mas a janela de validade já passou."""

class ConfigurationError(Exception):
    """Chave de assinatura ausente ou inválida. Fatal na inicialização."""

# ========================
# --- Funções Auxiliares ---
# ========================
def b64url_encode(data: bytes) -> str:
    """Codifica bytes em base64url sem padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")

def b64url_decode(segment: str) -> bytes:
    """
    Decodifica um segmento base64url sem padding de forma estrita.

    Rejeita caracteres fora do alfabeto, padding e codificações não canônicas
    (bits finais diferentes de zero), de modo que qualquer alteração de
    caractere altere os bytes decodificados.

    Raises:
        MalformedToken: Se o segmento não for base64url canônico.
    """
    if not _B64URL_SEGMENT.fullmatch(segment):
        raise MalformedToken("Segmento com caracteres fora do alfabeto base64url.")
    try:
        data = base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))
    except (binascii.Error, ValueError) as e:
        raise MalformedToken("Segmento base64url inválido.") from e
    if b64url_encode(data) != segment:
        raise MalformedToken("Segmento base64url não canônico.")
    return data

def decode_signing_secret(secret: Optional[str]) -> bytes:
    """
    Decodifica o segredo de assinatura vindo da configuração.

    Aceita base64 padrão ou base64url, com ou sem padding.

    Raises:
        ConfigurationError: Se o segredo estiver ausente, não for base64
            ou for curto demais.
    """
    if secret is None or not secret.strip():
        raise ConfigurationError("QR_SIGNING_SECRET não está configurado.")
    value = secret.strip().replace("-", "+").replace("_", "/")
    value += "=" * (-len(value) % 4)
    try:
        key = base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ConfigurationError("QR_SIGNING_SECRET não é uma string base64 válida.") from e
    if len(key) < MIN_KEY_BYTES:
        raise ConfigurationError(f"QR_SIGNING_SECRET deve ter pelo menos {MIN_KEY_BYTES} bytes.")
    return key

def generate_signing_secret(num_bytes: int = 32) -> str:
    """Gera um novo segredo de assinatura aleatório, codificado em base64."""
    return base64.b64encode(secrets.token_bytes(num_bytes)).decode("ascii")

def extract_token(url: str) -> str:
    """
    Extrai o token do parâmetro `token` de uma URL de check-in.

    Raises:
        MalformedToken: Se a URL não tiver exatamente um parâmetro `token`.
    """
    if not isinstance(url, str) or len(url) > MAX_TOKEN_LENGTH * 2:
        raise MalformedToken("URL de check-in inválida.")
    try:
        query = urlsplit(url).query
    except ValueError as e:
        raise MalformedToken("URL de check-in inválida.") from e
    values = parse_qs(query).get(TOKEN_QUERY_PARAM, [])
    if len(values) != 1:
        raise MalformedToken("URL sem token.")
    return values[0]

def _now_ms() -> int:
    return time.time_ns() // 1_000_000

# ========================
# --- Assinador ---
# ========================
class QRSigner:
    """
    Emite e verifica QR codes assinados e com validade curta.

    A instância é imutável depois de criada e pode ser compartilhada entre
    requisições concorrentes sem lock.
    """

    def __init__(
        self,
        key: bytes,
        *,
        ttl_ms: int = DEFAULT_TTL_MS,
        leeway_ms: int = 0,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        if not isinstance(key, (bytes, bytearray)) or len(key) < MIN_KEY_BYTES:
            raise ConfigurationError(f"A chave de assinatura deve ter pelo menos {MIN_KEY_BYTES} bytes.")
        if ttl_ms <= 0:
            raise ConfigurationError("A janela de validade do QR code deve ser positiva.")
        if leeway_ms < 0:
            raise ConfigurationError("A tolerância de relógio não pode ser negativa.")
        self._key = bytes(key)
        self.ttl_ms = ttl_ms
        self.leeway_ms = leeway_ms
        self._clock = clock or _now_ms

    @classmethod
    def from_settings(cls, current_settings: Any, clock: Optional[Callable[[], int]] = None) -> "QRSigner":
        """
        Cria o assinador a partir das configurações da aplicação.

        Raises:
            ConfigurationError: Se `QR_SIGNING_SECRET` estiver ausente ou inválido.
        """
        key = decode_signing_secret(current_settings.QR_SIGNING_SECRET)
        return cls(
            key,
            ttl_ms=current_settings.QR_TOKEN_TTL_SECONDS * 1000,
            leeway_ms=current_settings.QR_CLOCK_LEEWAY_SECONDS * 1000,
            clock=clock,
        )

    def _signature(self, payload_segment: str) -> bytes:
        return hmac.new(self._key, payload_segment.encode("ascii"), hashlib.sha256).digest()

    # --- Emissão ---
    def issue_token(self, subject_id: str, name: Optional[str] = None) -> IssuedQRToken:
        """
        Emite um token para `subject_id` e devolve também o payload assinado.

        Quem chama já deve ter autenticado o usuário; aqui não há checagem de permissão.

        Raises:
            ValueError: Se `subject_id` ou `name` excederem o tamanho máximo,
                ou se o token resultante não couber em `MAX_TOKEN_LENGTH`.
        """
        if not isinstance(subject_id, str) or not subject_id:
            raise ValueError("subject_id não pode ser vazio.")
        if len(subject_id) > MAX_SUBJECT_LENGTH:
            raise ValueError(f"subject_id deve ter no máximo {MAX_SUBJECT_LENGTH} caracteres.")
        if name is not None and len(name) > MAX_NAME_LENGTH:
            raise ValueError(f"name deve ter no máximo {MAX_NAME_LENGTH} caracteres.")
        issued_at = self._clock()
        payload = QRTokenPayload(
            sub=subject_id,
            iat=issued_at,
            exp=issued_at + self.ttl_ms,
            nonce=b64url_encode(secrets.token_bytes(NONCE_BYTES)),
            name=name,
        )
        payload_bytes = json.dumps(
            payload.model_dump(exclude_none=True), separators=(",", ":"), sort_keys=True
        ).encode("utf-8")
        payload_segment = b64url_encode(payload_bytes)
        token = f"{payload_segment}.{b64url_encode(self._signature(payload_segment))}"
        if len(token) > MAX_TOKEN_LENGTH:
            raise ValueError(f"O token emitido excede {MAX_TOKEN_LENGTH} caracteres.")
        return IssuedQRToken(token=token, payload=payload)

    def issue(self, subject_id: str, name: Optional[str] = None) -> str:
        """Emite um token assinado para `subject_id`."""
        return self.issue_token(subject_id, name=name).token

    def generate_url(self, subject_id: str, base_url: str, name: Optional[str] = None) -> str:
        """Emite um token e o coloca no parâmetro `token` de `base_url`."""
        return build_checkin_url(base_url, self.issue(subject_id, name=name))

    # --- Verificação ---
    def verify_payload(self, token: str) -> QRTokenPayload:
        """
        Verifica um token e devolve o payload completo.

        A assinatura é conferida antes de qualquer leitura do conteúdo do payload.

        Raises:
            MalformedToken: Estrutura, base64 ou payload inválidos.
            InvalidSignature: Assinatura não confere com a chave.
            Expired: A janela de validade já terminou.
        """
        if not isinstance(token, str) or len(token) > MAX_TOKEN_LENGTH:
            raise MalformedToken("Token ausente ou longo demais.")
        parts = token.split(".")
        if len(parts) != 2 or not all(parts):
            raise MalformedToken("O token deve ter exatamente dois segmentos.")
        payload_segment, signature_segment = parts

        payload_bytes = b64url_decode(payload_segment)
        signature = b64url_decode(signature_segment)

        if not hmac.compare_digest(self._signature(payload_segment), signature):
            logger.info("QR code rejeitado: assinatura inválida.")
            raise InvalidSignature("Assinatura do token inválida.")

        try:
            payload = QRTokenPayload.model_validate_json(payload_bytes)
        except ValidationError as e:
            raise MalformedToken("Payload do token inválido.") from e

        if self._clock() > payload.exp + self.leeway_ms:
            logger.info("QR code rejeitado: token expirado.")
            raise Expired("Token expirado.")
        return payload

    def verify(self, token: str) -> str:
        """Verifica um token e devolve o ID do usuário vinculado."""
        return self.verify_payload(token).sub

    def verify_url(self, url: str) -> str:
        """Verifica o token contido numa URL de check-in."""
        return self.verify(extract_token(url))

def build_checkin_url(base_url: str, token: str) -> str:
    """Coloca `token` no parâmetro de query `token` de `base_url`, preservando os demais."""
    scheme, netloc, path, query, fragment = urlsplit(base_url)
    params = [(k, v) for k, values in parse_qs(query).items() if k != TOKEN_QUERY_PARAM for v in values]
    params.append((TOKEN_QUERY_PARAM, token))
    return urlunsplit((scheme, netloc, path, urlencode(params), fragment))
