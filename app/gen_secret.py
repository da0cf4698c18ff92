# app/gen_secret.py
"""
Gera um novo segredo para assinar os QR codes de check-in.

Uso:
    python -m app.gen_secret >> .env
"""

# ========================
# --- Importações ---
# ========================
import argparse

# --- Módulos da Aplicação ---
from app.core.qr import MIN_KEY_BYTES, generate_signing_secret

# ========================
# --- Função Principal ---
# ========================
def main(argv=None) -> str:
    parser = argparse.ArgumentParser(description="Gera QR_SIGNING_SECRET para o arquivo .env.")
    parser.add_argument(
        "--bytes",
        type=int,
        default=32,
        help=f"Tamanho da chave em bytes (mínimo {MIN_KEY_BYTES}).",
    )
    args = parser.parse_args(argv)
    if args.bytes < MIN_KEY_BYTES:
        parser.error(f"--bytes deve ser pelo menos {MIN_KEY_BYTES}.")

    line = f"QR_SIGNING_SECRET={generate_signing_secret(args.bytes)}"
    print(line)
    return line

if __name__ == "__main__": # pragma: no cover
    main()
