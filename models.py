"""Modelos de datos persistentes.

Todas las entidades (usuarios, clientes, proyectos y tareas) comparten una
única tabla física. El campo ``type`` actúa como discriminador y el resto de
atributos viaja en una columna JSON.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict
from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field

RECORD_TYPES = ('user', 'client', 'project', 'task')

class Record(SQLModel, table=True):
    """Fila genérica del almacén de tabla única.

    Campos:
      id: Identificador sintético ``<type>_<uuid>``, única clave primaria.
      type: user | client | project | task. Sin índice: listar por tipo es
        un recorrido completo con filtro.
      data: Resto de atributos del registro.
    """
    __tablename__ = 'records'

    id: str = Field(primary_key=True)
    type: str
    data: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))

    # to_item: Aplana la fila al diccionario que ven los servicios.
    def to_item(self) -> Dict[str, Any]:
        return {**(self.data or {}), 'id': self.id, 'type': self.type}

    # from_item: Construye la fila a partir de un registro completo.
    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> "Record":
        data = {k: v for k, v in item.items() if k not in ('id', 'type')}
        return cls(id=item['id'], type=item['type'], data=data)

# new_id: Identificador sintético ``<prefix>_<uuid4>``.
def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4()}"

# now_iso: Marca de tiempo ISO-8601 en UTC con milisegundos y sufijo Z.
def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')
