"""Funciones de seguridad: hashing de contraseñas, JWT y control de acceso.

Se utiliza bcrypt vía passlib para almacenar contraseñas y PyJWT para tokens.
La verificación del token es sin estado: la identidad sale de los claims y no
se consulta el almacén.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from passlib.context import CryptContext
from pydantic import BaseModel
import jwt
from config import get_settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=10)
settings = get_settings()
bearer = HTTPBearer(auto_error=False)

# Capacidades por rol; cualquier comprobación de rol pasa por has_capability.
MANAGE_USERS = 'manage_users'
VIEW_BLOCKED_USERS = 'view_blocked_users'
ROLE_CAPABILITIES = {
    'admin': frozenset({MANAGE_USERS, VIEW_BLOCKED_USERS}),
    'user': frozenset(),
}

class Identity(BaseModel):
    """Identidad del llamante extraída del token."""
    id: str
    email: Optional[str] = None
    role: str = 'user'
    name: Optional[str] = None

# hash_password: Genera hash bcrypt de una contraseña en texto plano.
def hash_password(password: str) -> str:
    # Truncar password a 72 bytes para compatibilidad bcrypt
    password_bytes = password.encode('utf-8')[:72]
    return pwd_context.hash(password_bytes.decode('utf-8', errors='ignore'))

# verify_password: Verifica si la contraseña suministrada coincide con el hash.
def verify_password(password: str, password_hash: str) -> bool:
    password_bytes = password.encode('utf-8')[:72]
    return pwd_context.verify(password_bytes.decode('utf-8', errors='ignore'), password_hash)

# create_token: Crea un JWT con id, email, rol y nombre del usuario.
def create_token(user: Dict[str, Any]) -> str:
    exp = datetime.now(timezone.utc) + timedelta(minutes=settings.jwt_exp_minutes)
    payload = {
        "sub": user['id'],
        "id": user['id'],
        "email": user.get('email'),
        "role": user.get('role', 'user'),
        "name": user.get('name'),
        "exp": exp,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)

# decode_token: Decodifica el JWT y retorna payload o None si inválido, expirado o sin exp.
def decode_token(token: str):
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm],
                          options={"require": ["exp"]})
    except jwt.PyJWTError:
        return None

# strip_password: Copia del usuario sin el campo password.
def strip_password(user: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in user.items() if k != 'password'}

def has_capability(identity: Identity, capability: str) -> bool:
    """Indica si el rol de la identidad concede la capacidad pedida."""
    return capability in ROLE_CAPABILITIES.get(identity.role, frozenset())

def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer)) -> Identity:
    """Obtiene la identidad a partir del token Bearer o lanza 401."""
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Access token required")
    data = decode_token(credentials.credentials)
    if not data or not data.get('id'):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")
    return Identity(id=data['id'], email=data.get('email'), role=data.get('role', 'user'), name=data.get('name'))

def require_capability(capability: str):
    """Genera dependencia que valida que la identidad tenga la capacidad."""
    def checker(identity: Identity = Depends(get_current_user)):
        if not has_capability(identity, capability):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
        return identity
    return checker
