# app/models/user.py
"""
Este módulo define os modelos Pydantic para a entidade Usuário (User) da academia.
Inclui os papéis (roles) que controlam o acesso ao fluxo de check-in,
e os modelos de criação, atualização e representação no banco e na API.
"""

# ========================
# --- Importações ---
# ========================
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, ConfigDict

# ========================
# --- Enumeração de Papéis ---
# ========================
class UserRole(str, Enum):
    """Papéis de usuário da academia."""
    ADMIN = "admin"
    STAFF = "staff"    # Recepção: lê os QR codes e registra entradas/saídas.
    COACH = "coach"
    USER = "user"      # Aluno.

# ========================
# --- Modelos Pydantic de User ---
# ========================

# --- Modelo Base ---
class UserBase(BaseModel):
    """Atributos comuns a todas as representações de um usuário."""
    email: EmailStr = Field(..., title="Endereço de E-mail", description="Deve ser um e-mail válido e único.")
    username: str = Field(
        ...,
        title="Nome de Usuário",
        min_length=3,
        max_length=50,
        pattern="^[a-zA-Z0-9_]+$",
        description="Nome de usuário único (letras, números, underscore)."
    )
    full_name: Optional[str] = Field(None, title="Nome Completo", max_length=100)
    role: UserRole = Field(default=UserRole.USER, title="Papel", description="Define as permissões do usuário.")
    disabled: bool = Field(default=False, title="Status Desativado", description="Indica se o usuário está desativado.")

    @property
    def display_name(self) -> str:
        """Nome exibido na recepção ao ler o QR code."""
        return self.full_name or self.username

# --- Modelo para Criação de Usuário ---
class UserCreate(BaseModel):
    """
    Dados necessários para registrar um novo aluno.
    O papel não é aceito aqui: todo registro começa como `user`.
    """
    email: EmailStr = Field(..., title="Endereço de E-mail")
    username: str = Field(..., title="Nome de Usuário", min_length=3, max_length=50, pattern="^[a-zA-Z0-9_]+$")
    password: str = Field(..., title="Senha", min_length=8, description="Senha (será hasheada antes de salvar).")
    full_name: Optional[str] = Field(None, title="Nome Completo", max_length=100)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "email": "aluno@example.com",
                    "username": "aluno_teste",
                    "password": "umasenhabemsegura",
                    "full_name": "Aluno Teste"
                }
            ]
        }
    }

# --- Modelo para Atualização de Usuário ---
class UserUpdate(BaseModel):
    """Campos que o próprio usuário pode atualizar. Todos opcionais."""
    email: Optional[EmailStr] = Field(None, title="Endereço de E-mail")
    password: Optional[str] = Field(None, title="Nova Senha", min_length=8, description="Nova senha (se fornecida).")
    full_name: Optional[str] = Field(None, title="Nome Completo", max_length=100)

# --- Modelo para Alteração de Papel ---
class UserRoleUpdate(BaseModel):
    """Payload usado por administradores para alterar o papel de um usuário."""
    role: UserRole = Field(..., title="Novo Papel")

# --- Modelos para Representação no Banco de Dados e Respostas da API ---
class UserInDB(UserBase):
    """
    Usuário como armazenado no banco de dados, incluindo a senha hasheada.
    Usado apenas internamente.
    """
    id: uuid.UUID = Field(..., title="ID Único do Usuário")
    hashed_password: str = Field(..., title="Senha Hasheada")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), title="Data de Criação")
    updated_at: Optional[datetime] = Field(None, title="Data da Última Atualização")

    model_config = ConfigDict(from_attributes=True)

class User(UserBase):
    """Usuário exposto nas respostas da API, sem a senha hasheada."""
    id: uuid.UUID = Field(..., title="ID Único do Usuário")
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
