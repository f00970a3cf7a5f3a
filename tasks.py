"""Servicio de tareas y comentarios."""

import logging
from typing import Any, Dict, List, Optional
import database
from clients import make_note
from models import new_id, now_iso
from security import Identity

logger = logging.getLogger(__name__)

class TaskService:
    """Agrupa lógica de alta, consulta, filtros y comentarios de tareas."""
    @staticmethod
    def list_tasks(assigned_to: Optional[str] = None, project_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Lista tareas, opcionalmente filtradas por asignado o proyecto.

        Los filtros se aplican tras el recorrido completo por tipo.
        """
        tasks = database.get_items_by_type('task')
        if assigned_to is not None:
            tasks = [t for t in tasks if t.get('assignedTo') == assigned_to]
        if project_id is not None:
            tasks = [t for t in tasks if t.get('projectId') == project_id]
        return tasks

    @staticmethod
    def get(task_id: str) -> Optional[Dict[str, Any]]:
        task = database.get_item(task_id)
        if not task or task.get('type') != 'task':
            return None
        return task

    @staticmethod
    def create(fields: Dict[str, Any], author: Identity) -> Dict[str, Any]:
        task = {
            'id': new_id('task'),
            'type': 'task',
            'title': fields['title'],
            'description': fields.get('description') or '',
            'assignedTo': fields.get('assignedTo') or None,
            'assignedToName': fields.get('assignedToName') or None,
            'projectId': fields.get('projectId') or None,
            'status': fields.get('status') or 'todo',
            'priority': fields.get('priority') or 'medium',
            'dueDate': fields.get('dueDate') or None,
            'comments': [],
            'createdAt': now_iso(),
            'createdBy': author.id,
            'createdByName': author.name,
        }
        database.put_item(task)
        logger.info("Task %s created by %s", task['id'], author.id)
        return task

    @staticmethod
    def update(task_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return database.update_item(task_id, {**updates, 'updatedAt': now_iso()})

    @staticmethod
    def delete(task_id: str):
        database.delete_item(task_id)
        logger.info("Task %s deleted", task_id)

    @staticmethod
    def add_comment(task: Dict[str, Any], text: str, author: Identity) -> Dict[str, Any]:
        comment = make_note('comment', text, author)
        database.update_item(task['id'], {
            'comments': [*(task.get('comments') or []), comment],
            'updatedAt': comment['createdAt'],
        })
        return comment
