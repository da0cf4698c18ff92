# tests/test_core_qr.py
"""
Testes unitários do assinador de QR codes (`app.core.qr`).

Cobrem:
- Emissão: formato, alfabeto base64url, unicidade e conteúdo do payload.
- Verificação: ida e volta, adulteração de qualquer caractere, expiração
  nos dois sentidos da fronteira, troca de chave e entradas malformadas.
- Helpers de URL, decodificação do segredo e erros de configuração.
"""

# ========================
# --- Importações ---
# ========================
import base64
import hashlib
import hmac
import json
import re
from datetime import timedelta
from types import SimpleNamespace

import pytest
from freezegun import freeze_time

# --- Módulos da Aplicação ---
from app.core.qr import (
    MAX_TOKEN_LENGTH, ConfigurationError, Expired, InvalidSignature, MalformedToken, QRSigner, QRTokenError,
    b64url_decode, b64url_encode, build_checkin_url, decode_signing_secret, extract_token,
    generate_signing_secret,
)
from app.models.qr import MAX_NAME_LENGTH, MAX_SUBJECT_LENGTH
from tests.conftest import OTHER_KEY, TEST_KEY, TEST_TTL_MS, FakeClock

# ========================
# --- Constantes e Helpers ---
# ========================
BASE64URL_TOKEN_RE = re.compile(r"^[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+$")
B64URL_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_"

def _signed_token(payload_bytes: bytes, key: bytes = TEST_KEY) -> str:
    """Monta um token com assinatura válida para bytes de payload arbitrários."""
    segment = b64url_encode(payload_bytes)
    signature = hmac.new(key, segment.encode("ascii"), hashlib.sha256).digest()
    return f"{segment}.{b64url_encode(signature)}"

def _payload_of(token: str) -> dict:
    return json.loads(b64url_decode(token.split(".")[0]))

# ========================
# --- Testes de Emissão ---
# ========================
def test_issue_produces_two_url_safe_segments(signer: QRSigner):
    token = signer.issue("user-123")

    assert BASE64URL_TOKEN_RE.match(token), f"Token fora do alfabeto base64url: {token}"
    assert "=" not in token

def test_issue_binds_subject_and_validity_window(signer: QRSigner, clock: FakeClock):
    token = signer.issue("user-123", name="Maria")

    payload = _payload_of(token)
    assert payload["sub"] == "user-123"
    assert payload["iat"] == clock.now
    assert payload["exp"] == clock.now + TEST_TTL_MS
    assert payload["name"] == "Maria"
    assert len(b64url_decode(payload["nonce"])) >= 16

def test_issue_omits_name_when_not_given(signer: QRSigner):
    assert "name" not in _payload_of(signer.issue("user-123"))

def test_signature_covers_the_transmitted_payload_segment(signer: QRSigner):
    payload_segment, signature_segment = signer.issue("user-123").split(".")

    expected = hmac.new(TEST_KEY, payload_segment.encode("ascii"), hashlib.sha256).digest()
    assert b64url_decode(signature_segment) == expected

def test_issue_twice_in_same_millisecond_yields_distinct_tokens(signer: QRSigner):
    first = signer.issue("user-123")
    second = signer.issue("user-123")

    assert first != second
    assert _payload_of(first)["iat"] == _payload_of(second)["iat"]
    assert _payload_of(first)["nonce"] != _payload_of(second)["nonce"]

def test_issue_token_returns_matching_payload(signer: QRSigner):
    issued = signer.issue_token("user-123")

    assert signer.verify_payload(issued.token) == issued.payload

@pytest.mark.parametrize("subject", ["", None, 123])
def test_issue_rejects_empty_or_non_string_subject(signer: QRSigner, subject):
    with pytest.raises(ValueError):
        signer.issue(subject)

def test_issue_at_maximum_lengths_round_trips(signer: QRSigner):
    subject = "u" * MAX_SUBJECT_LENGTH
    token = signer.issue(subject, name="n" * MAX_NAME_LENGTH)

    assert len(token) <= MAX_TOKEN_LENGTH
    assert signer.verify(token) == subject

def test_issue_rejects_subject_over_maximum_length(signer: QRSigner):
    with pytest.raises(ValueError):
        signer.issue("u" * (MAX_SUBJECT_LENGTH + 1))

def test_issue_rejects_name_over_maximum_length(signer: QRSigner):
    with pytest.raises(ValueError):
        signer.issue("user-123", name="n" * (MAX_NAME_LENGTH + 1))

def test_issue_rejects_token_that_verify_would_refuse(signer: QRSigner):
    """Caracteres fora do BMP viram escapes `\\uXXXX\\uXXXX` no JSON e podem estourar o limite do token."""
    emoji = "\U0001F600"

    with pytest.raises(ValueError):
        signer.issue(emoji * MAX_SUBJECT_LENGTH, name=emoji * MAX_NAME_LENGTH)

# ========================
# --- Testes de Verificação ---
# ========================
@pytest.mark.parametrize("subject", ["user-123", "6650f0c2a1b2c3d4e5f60718", "9b1deb4d-3b7d-4bad-9bdd-2b0d7b3dcb6d", "usuário-ç"])
def test_verify_round_trip(signer: QRSigner, subject: str):
    assert signer.verify(signer.issue(subject)) == subject

def test_concrete_scenario_from_zero():
    clock = FakeClock(now=0)
    signer = QRSigner(TEST_KEY, ttl_ms=15_000, clock=clock)
    token = signer.issue("user-123")

    clock.now = 14_000
    assert signer.verify(token) == "user-123"

    clock.now = 16_000
    with pytest.raises(Expired):
        signer.verify(token)

    with pytest.raises(MalformedToken):
        signer.verify("garbage")

    with pytest.raises((InvalidSignature, MalformedToken)):
        signer.verify(token[:-1] + ("x" if token[-1] != "x" else "y"))

def test_fresh_token_is_accepted(signer: QRSigner):
    """Regressão: um token ainda dentro da janela nunca deve ser tratado como expirado."""
    token = signer.issue("user-123")
    assert signer.verify(token) == "user-123"

def test_token_is_accepted_exactly_at_expiry(signer: QRSigner, clock: FakeClock):
    token = signer.issue("user-123")
    clock.advance(TEST_TTL_MS)

    assert signer.verify(token) == "user-123"

def test_token_is_rejected_one_millisecond_after_expiry(signer: QRSigner, clock: FakeClock):
    token = signer.issue("user-123")
    clock.advance(TEST_TTL_MS + 1)

    with pytest.raises(Expired):
        signer.verify(token)

def test_leeway_extends_acceptance_after_expiry(clock: FakeClock):
    signer = QRSigner(TEST_KEY, ttl_ms=TEST_TTL_MS, leeway_ms=1_000, clock=clock)
    token = signer.issue("user-123")

    clock.advance(TEST_TTL_MS + 999)
    assert signer.verify(token) == "user-123"

    clock.advance(2)
    with pytest.raises(Expired):
        signer.verify(token)

def test_token_signed_with_other_key_is_rejected(signer: QRSigner, clock: FakeClock):
    other = QRSigner(OTHER_KEY, ttl_ms=TEST_TTL_MS, clock=clock)

    with pytest.raises(InvalidSignature):
        signer.verify(other.issue("user-123"))

def test_changing_any_character_is_detected(signer: QRSigner):
    token = signer.issue("user-123")

    for index, char in enumerate(token):
        if char == ".":
            continue
        for replacement in (B64URL_ALPHABET[(B64URL_ALPHABET.index(char) + 1) % 64], "A" if char != "A" else "B"):
            tampered = token[:index] + replacement + token[index + 1:]
            with pytest.raises((InvalidSignature, MalformedToken)):
                signer.verify(tampered)

def test_flipping_any_payload_bit_is_detected(signer: QRSigner):
    payload_segment, signature_segment = signer.issue("user-123").split(".")
    payload_bytes = b64url_decode(payload_segment)

    for byte_index in range(len(payload_bytes)):
        for bit in range(8):
            flipped = bytearray(payload_bytes)
            flipped[byte_index] ^= 1 << bit
            with pytest.raises(InvalidSignature):
                signer.verify(f"{b64url_encode(bytes(flipped))}.{signature_segment}")

def test_flipping_any_signature_bit_is_detected(signer: QRSigner):
    payload_segment, signature_segment = signer.issue("user-123").split(".")
    signature = b64url_decode(signature_segment)

    for byte_index in range(len(signature)):
        flipped = bytearray(signature)
        flipped[byte_index] ^= 0x01
        with pytest.raises(InvalidSignature):
            signer.verify(f"{payload_segment}.{b64url_encode(bytes(flipped))}")

@pytest.mark.parametrize("token", [
    "garbage",
    "",
    ".",
    "abc.",
    ".abc",
    "a.b.c",
    "abc def.abc",
    "YWJj=.YWJj",
    "YWJj.YWJj\n",
    "A.YWJj",
    "YW+j.YWJj",
])
def test_structurally_invalid_tokens_are_malformed(signer: QRSigner, token: str):
    with pytest.raises(MalformedToken):
        signer.verify(token)

@pytest.mark.parametrize("token", [None, 123, b"abc.def"])
def test_non_string_tokens_are_malformed(signer: QRSigner, token):
    with pytest.raises(MalformedToken):
        signer.verify(token)

def test_oversized_token_is_malformed(signer: QRSigner):
    with pytest.raises(MalformedToken):
        signer.verify("A" * 5000 + ".AAAA")

def test_signature_is_checked_before_payload_is_parsed(signer: QRSigner):
    """Payload ilegível com assinatura errada deve falhar na assinatura, não no parse."""
    token = f"{b64url_encode(b'not json')}.{b64url_encode(b'x' * 32)}"

    with pytest.raises(InvalidSignature):
        signer.verify(token)

@pytest.mark.parametrize("payload_bytes", [
    b"not json",
    b"[]",
    b'"user-123"',
    json.dumps({"sub": "user-123", "iat": 1, "exp": 2}).encode(),
    json.dumps({"sub": "", "iat": 1, "exp": 2, "nonce": "A" * 22}).encode(),
    json.dumps({"sub": "user-123", "iat": 10, "exp": 10, "nonce": "A" * 22}).encode(),
    json.dumps({"sub": "user-123", "iat": "1", "exp": "2", "nonce": "A" * 22}).encode(),
    json.dumps({"sub": "user-123", "iat": 1, "exp": 2, "nonce": "A" * 22, "role": "admin"}).encode(),
    json.dumps({"sub": "u" * 129, "iat": 1, "exp": 2, "nonce": "A" * 22}).encode(),
])
def test_correctly_signed_but_invalid_payload_is_malformed(signer: QRSigner, payload_bytes: bytes):
    with pytest.raises(MalformedToken):
        signer.verify(_signed_token(payload_bytes))

def test_all_failure_kinds_share_a_common_base(signer: QRSigner, clock: FakeClock):
    token = signer.issue("user-123")
    clock.advance(TEST_TTL_MS + 1)

    for bad in ("garbage", _signed_token(b"x", key=OTHER_KEY), token):
        with pytest.raises(QRTokenError):
            signer.verify(bad)

# ========================
# --- Testes de URL ---
# ========================
def test_generate_url_and_verify_url_round_trip(signer: QRSigner):
    url = signer.generate_url("user-123", "https://gymembrace.app/checkin")

    assert url.startswith("https://gymembrace.app/checkin?token=")
    assert signer.verify_url(url) == "user-123"

def test_build_checkin_url_keeps_other_params_and_replaces_token():
    url = build_checkin_url("https://gymembrace.app/checkin?lang=pt&token=old", "abc.def")

    assert "lang=pt" in url
    assert "token=old" not in url
    assert extract_token(url) == "abc.def"

@pytest.mark.parametrize("url", [
    "https://gymembrace.app/checkin",
    "https://gymembrace.app/checkin?token=",
    "https://gymembrace.app/checkin?token=a.b&token=c.d",
    None,
])
def test_extract_token_rejects_urls_without_single_token(url):
    with pytest.raises(MalformedToken):
        extract_token(url)

def test_verify_url_with_expired_token(signer: QRSigner, clock: FakeClock):
    url = signer.generate_url("user-123", "https://gymembrace.app/checkin")
    clock.advance(TEST_TTL_MS + 1)

    with pytest.raises(Expired):
        signer.verify_url(url)

# ========================
# --- Testes de Configuração ---
# ========================
def test_decode_signing_secret_accepts_standard_and_urlsafe_base64():
    standard = base64.b64encode(TEST_KEY).decode()
    urlsafe_unpadded = base64.urlsafe_b64encode(TEST_KEY).decode().rstrip("=")

    assert decode_signing_secret(standard) == TEST_KEY
    assert decode_signing_secret(urlsafe_unpadded) == TEST_KEY
    assert decode_signing_secret(f"  {standard}\n") == TEST_KEY

@pytest.mark.parametrize("secret", [None, "", "   ", "not base64!!", "c2hvcnQ="])
def test_decode_signing_secret_rejects_missing_invalid_or_short(secret):
    with pytest.raises(ConfigurationError):
        decode_signing_secret(secret)

def test_generate_signing_secret_is_random_and_decodable():
    first = generate_signing_secret()
    second = generate_signing_secret()

    assert first != second
    assert len(decode_signing_secret(first)) == 32

@pytest.mark.parametrize("kwargs", [
    {"key": b"short"},
    {"key": "0123456789abcdef0123456789abcdef"},
    {"key": TEST_KEY, "ttl_ms": 0},
    {"key": TEST_KEY, "ttl_ms": -1},
    {"key": TEST_KEY, "leeway_ms": -1},
])
def test_signer_rejects_invalid_configuration(kwargs):
    key = kwargs.pop("key")
    with pytest.raises(ConfigurationError):
        QRSigner(key, **kwargs)

def test_from_settings_uses_configured_window(clock: FakeClock):
    current_settings = SimpleNamespace(
        QR_SIGNING_SECRET=base64.b64encode(TEST_KEY).decode(),
        QR_TOKEN_TTL_SECONDS=30,
        QR_CLOCK_LEEWAY_SECONDS=2,
    )

    signer = QRSigner.from_settings(current_settings, clock=clock)

    assert signer.ttl_ms == 30_000
    assert signer.leeway_ms == 2_000
    assert QRSigner(TEST_KEY, clock=clock).verify(signer.issue("user-123")) == "user-123"

def test_from_settings_without_secret_is_fatal():
    current_settings = SimpleNamespace(QR_SIGNING_SECRET=None, QR_TOKEN_TTL_SECONDS=15, QR_CLOCK_LEEWAY_SECONDS=0)

    with pytest.raises(ConfigurationError):
        QRSigner.from_settings(current_settings)

# ========================
# --- Relógio Padrão ---
# ========================
def test_default_clock_uses_wall_time_in_milliseconds():
    with freeze_time("2026-01-01 00:00:00") as frozen:
        signer = QRSigner(TEST_KEY)
        token = signer.issue("user-123")
        assert _payload_of(token)["iat"] == 1_767_225_600_000

        frozen.tick(timedelta(seconds=15))
        assert signer.verify(token) == "user-123"

        # O freezegun converte para ns via float; 1 ms pode ser absorvido no arredondamento.
        frozen.tick(timedelta(milliseconds=5))
        with pytest.raises(Expired):
            signer.verify(token)
