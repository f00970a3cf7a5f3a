"""Módulo de acceso al almacén de tabla única.

Define el motor, utilidades de sesión y las operaciones genéricas
(put, get, scan por tipo, update parcial, delete) sobre la tabla ``records``.
No hay transacciones entre registros ni control de concurrencia: el último
en escribir gana.
"""

from typing import Any, Dict, List, Optional
from sqlalchemy import func
from sqlmodel import SQLModel, create_engine, Session, select
from config import get_settings
from models import Record, RECORD_TYPES

settings = get_settings()

_connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}
engine = create_engine(settings.database_url, echo=False, connect_args=_connect_args)

# Claves que update_item nunca sobrescribe.
IMMUTABLE_KEYS = ('id', 'type')

class RecordNotFound(Exception):
    """Se intentó actualizar un registro inexistente."""
    def __init__(self, record_id: str):
        super().__init__(f"Record {record_id} does not exist")
        self.record_id = record_id

# init_db: Crea la tabla única si no existe.
def init_db():
    SQLModel.metadata.create_all(engine)

class DBSession:
    """Context manager para manejar sesiones.

    Al salir del contexto realiza rollback si hubo excepción y cierra la sesión.
    """
    def __enter__(self):
        self.session = Session(engine)
        return self.session

    def __exit__(self, exc_type, exc, tb):
        if exc:
            self.session.rollback()
        self.session.close()

# put_item: Inserta o reemplaza el registro completo por su id.
def put_item(item: Dict[str, Any]) -> Dict[str, Any]:
    if item.get('type') not in RECORD_TYPES:
        raise ValueError(f"Unknown record type: {item.get('type')!r}")
    with DBSession() as s:
        s.merge(Record.from_item(item))
        s.commit()
    return item

# get_item: Lectura puntual; None si no existe.
def get_item(record_id: str) -> Optional[Dict[str, Any]]:
    with DBSession() as s:
        row = s.get(Record, record_id)
        return row.to_item() if row else None

def get_items_by_type(record_type: str) -> List[Dict[str, Any]]:
    """Devuelve todos los registros de un tipo.

    Recorre la tabla completa filtrando por el discriminador; el coste crece
    con el tamaño total del almacén y el orden no está garantizado.
    """
    with DBSession() as s:
        rows = s.exec(select(Record).where(Record.type == record_type)).all()
        return [r.to_item() for r in rows]

def update_item(record_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Fusiona ``updates`` sobre el registro existente.

    Los campos ausentes se conservan; ``id`` y ``type`` se ignoran. Devuelve
    el registro resultante, o None si no quedó ningún campo que escribir.
    Lanza RecordNotFound si el registro no existe.
    """
    fields = {k: v for k, v in updates.items() if k not in IMMUTABLE_KEYS}
    if not fields:
        return None
    with DBSession() as s:
        row = s.get(Record, record_id)
        if row is None:
            raise RecordNotFound(record_id)
        # Asignar un dict nuevo para que SQLAlchemy detecte el cambio en JSON.
        row.data = {**(row.data or {}), **fields}
        s.add(row)
        s.commit()
        s.refresh(row)
        return row.to_item()

# delete_item: Borra por id; idempotente.
def delete_item(record_id: str) -> None:
    with DBSession() as s:
        row = s.get(Record, record_id)
        if row is not None:
            s.delete(row)
            s.commit()

# get_user_by_email: Busca un usuario por email (en minúsculas); primer resultado.
def get_user_by_email(email: str) -> Optional[Dict[str, Any]]:
    wanted = email.lower()
    for user in get_items_by_type('user'):
        if user.get('email') == wanted:
            return user
    return None

# count_items: Número total de registros almacenados.
def count_items() -> int:
    with DBSession() as s:
        return s.exec(select(func.count()).select_from(Record)).one()
