# app/core/permissions.py
"""
Tabela de permissões por papel (role) da academia.

Cada papel recebe, por recurso, o conjunto de ações permitidas. As rotas
pedem uma permissão com `require_permission(recurso, ação)` (ver
`app.core.dependencies`).
"""

# ========================
# --- Importações ---
# ========================
from typing import Dict, FrozenSet

# --- Módulos da Aplicação ---
from app.models.user import UserRole

# ========================
# --- Recursos e Ações ---
# ========================
EVENTS = "events"
USERS = "users"

CREATE = "create"
READ = "read"
READ_OWN = "read:own"
SET_ROLE = "set-role"

# ========================
# --- Permissões por Papel ---
# ========================
ROLE_PERMISSIONS: Dict[UserRole, Dict[str, FrozenSet[str]]] = {
    UserRole.ADMIN: {
        EVENTS: frozenset({CREATE, READ, READ_OWN}),
        USERS: frozenset({SET_ROLE}),
    },
    UserRole.STAFF: {
        EVENTS: frozenset({CREATE, READ_OWN}),
    },
    UserRole.COACH: {
        EVENTS: frozenset({READ_OWN}),
    },
    UserRole.USER: {
        EVENTS: frozenset({READ_OWN}),
    },
}

def has_permission(role: UserRole, resource: str, action: str) -> bool:
    """Indica se `role` pode executar `action` sobre `resource`."""
    return action in ROLE_PERMISSIONS.get(role, {}).get(resource, frozenset())
