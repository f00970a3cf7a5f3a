"""Servicio de clientes y sus notas."""

import logging
from typing import Any, Dict, List, Optional
import database
from models import new_id, now_iso
from security import Identity

logger = logging.getLogger(__name__)

# make_note: Nota con autor; la comparten clientes (notas) y tareas (comentarios).
def make_note(prefix: str, text: str, author: Identity) -> Dict[str, Any]:
    return {
        'id': new_id(prefix),
        'text': text,
        'createdBy': author.id,
        'createdByName': author.name,
        'createdAt': now_iso(),
    }

class ClientService:
    """Agrupa lógica de alta, consulta, edición y notas de clientes."""
    @staticmethod
    def list_clients() -> List[Dict[str, Any]]:
        return database.get_items_by_type('client')

    @staticmethod
    def get(client_id: str) -> Optional[Dict[str, Any]]:
        """Recupera un cliente por id; None si no existe o el tipo no coincide."""
        client = database.get_item(client_id)
        if not client or client.get('type') != 'client':
            return None
        return client

    @staticmethod
    def create(fields: Dict[str, Any], author: Identity) -> Dict[str, Any]:
        """Crea un cliente.

        Si ``fields['notes']`` trae texto se guarda como primera nota firmada
        por el autor.
        """
        now = now_iso()
        notes = fields.get('notes')
        client = {
            'id': new_id('client'),
            'type': 'client',
            'name': fields['name'],
            'email': fields.get('email') or '',
            'phone': fields.get('phone') or '',
            'company': fields.get('company') or '',
            'status': fields.get('status') or 'new_lead',
            'source': fields.get('source') or 'direct',
            'notes': [make_note('note', notes, author)] if notes else [],
            'createdAt': now,
            'createdBy': author.id,
            'createdByName': author.name,
        }
        database.put_item(client)
        logger.info("Client %s created by %s", client['id'], author.id)
        return client

    @staticmethod
    def update(client_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return database.update_item(client_id, {**updates, 'updatedAt': now_iso()})

    @staticmethod
    def delete(client_id: str):
        # Sin cascada: proyectos y tareas que lo referencian quedan intactos.
        database.delete_item(client_id)
        logger.info("Client %s deleted", client_id)

    @staticmethod
    def add_note(client: Dict[str, Any], text: str, author: Identity) -> Dict[str, Any]:
        """Añade una nota al final de la lista y reescribe el array completo."""
        note = make_note('note', text, author)
        database.update_item(client['id'], {
            'notes': [*(client.get('notes') or []), note],
            'updatedAt': note['createdAt'],
        })
        return note
