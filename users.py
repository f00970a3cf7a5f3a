"""Servicio de usuarios: login, alta, bloqueo, borrado y admin inicial."""

import logging
from typing import Any, Dict, List, Optional
import database
from models import new_id, now_iso
from security import hash_password, verify_password, create_token, strip_password

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6

class LoginError(Exception):
    """Fallo de login; ``status_code`` distingue credenciales (401) de bloqueo (403)."""
    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message

class UserService:
    """Agrupa la lógica sobre registros de tipo user."""
    @staticmethod
    def authenticate(email: str, password: str) -> Dict[str, Any]:
        """Valida credenciales y devuelve ``{token, user}``.

        Email inexistente y contraseña incorrecta producen el mismo error para
        no revelar qué cuentas existen. Un usuario bloqueado recibe 403 aunque
        la contraseña sea correcta.
        """
        user = database.get_user_by_email(email)
        if not user or not verify_password(password, user.get('password', '')):
            raise LoginError(401, "Invalid email or password")
        if user.get('isBlocked'):
            raise LoginError(403, "Your account has been blocked. Contact admin.")
        logger.info("User %s logged in", user['id'])
        return {"token": create_token(user), "user": strip_password(user)}

    @staticmethod
    def get(user_id: str) -> Optional[Dict[str, Any]]:
        """Recupera un usuario por id o None si no existe o no es un usuario."""
        user = database.get_item(user_id)
        if not user or user.get('type') != 'user':
            return None
        return user

    @staticmethod
    def list_users(include_blocked: bool) -> List[Dict[str, Any]]:
        users = database.get_items_by_type('user')
        return [strip_password(u) for u in users if include_blocked or not u.get('isBlocked')]

    @staticmethod
    def email_taken(email: str) -> bool:
        return database.get_user_by_email(email) is not None

    @staticmethod
    def create(name: str, email: str, password: str, created_by: str) -> Dict[str, Any]:
        """Crea un usuario con rol user; la contraseña se guarda hasheada."""
        user = {
            'id': new_id('user'),
            'type': 'user',
            'email': email.lower(),
            'password': hash_password(password),
            'name': name,
            'role': 'user',
            'isBlocked': False,
            'createdAt': now_iso(),
            'createdBy': created_by,
        }
        database.put_item(user)
        logger.info("User %s created by %s", user['id'], created_by)
        return strip_password(user)

    @staticmethod
    def set_blocked(user_id: str, blocked: bool) -> Optional[Dict[str, Any]]:
        updated = database.update_item(user_id, {'isBlocked': blocked, 'updatedAt': now_iso()})
        logger.info("User %s %s", user_id, 'blocked' if blocked else 'unblocked')
        return updated

    @staticmethod
    def delete(user_id: str):
        database.delete_item(user_id)
        logger.info("User %s deleted", user_id)

    @staticmethod
    def ensure_admin(email: str, password: str) -> Optional[Dict[str, Any]]:
        """Crea el administrador inicial si no existe un usuario con ese email.

        Devuelve el registro creado (sin password) o None si ya existía.
        """
        if database.get_user_by_email(email):
            logger.info("Admin user already exists")
            return None
        admin = {
            'id': new_id('user_admin'),
            'type': 'user',
            'email': email.lower(),
            'password': hash_password(password),
            'name': 'Admin',
            'role': 'admin',
            'isBlocked': False,
            'createdAt': now_iso(),
        }
        database.put_item(admin)
        logger.info("Admin user created: %s", admin['email'])
        return strip_password(admin)
