"""Servicio de proyectos: módulos, finanzas, documentos y actividades.

Cada cambio en módulos, finanzas o documentos deja una actividad en el
historial del proyecto. La colección y su actividad se escriben en una sola
llamada a update_item, leyendo primero el proyecto: dos peticiones
concurrentes sobre el mismo array pueden pisarse (última escritura gana).
"""

import logging
from typing import Any, Dict, List, Optional
import database
from models import new_id, now_iso
from security import Identity

logger = logging.getLogger(__name__)

class ProjectService:
    """Agrupa lógica de proyectos y sus colecciones anidadas."""
    @staticmethod
    def list_projects() -> List[Dict[str, Any]]:
        return database.get_items_by_type('project')

    @staticmethod
    def get(project_id: str) -> Optional[Dict[str, Any]]:
        """Recupera un proyecto por id; None si no existe o el tipo no coincide."""
        project = database.get_item(project_id)
        if not project or project.get('type') != 'project':
            return None
        return project

    # make_activity: Entrada del historial; author solo en actividades manuales.
    @staticmethod
    def make_activity(kind: str, title: str, description: str, author: Optional[Identity] = None) -> Dict[str, Any]:
        activity = {
            'id': new_id('activity'),
            'type': kind,
            'title': title,
            'description': description,
            'timestamp': now_iso(),
        }
        if author is not None:
            activity['createdBy'] = author.id
            activity['createdByName'] = author.name
        return activity

    @staticmethod
    def make_module(fields: Dict[str, Any]) -> Dict[str, Any]:
        return {
            'id': new_id('module'),
            'name': fields.get('name'),
            'description': fields.get('description') or '',
            'assignedTo': fields.get('assignedTo') or None,
            'assignedToName': fields.get('assignedToName') or None,
            'estimatedDays': fields.get('estimatedDays') or 0,
            'status': 'pending',
            'createdAt': now_iso(),
        }

    @staticmethod
    def compute_financials(current: Optional[Dict[str, Any]], changes: Dict[str, Any]) -> Dict[str, Any]:
        """Fusiona cambios sobre las finanzas y recalcula ``dueAmount``.

        ``dueAmount`` nunca se toma de la entrada: siempre es
        ``totalAmount - paidAmount`` de los valores resultantes.
        """
        current = current or {}
        total = changes['totalAmount'] if changes.get('totalAmount') is not None else (current.get('totalAmount') or 0)
        paid = changes['paidAmount'] if changes.get('paidAmount') is not None else (current.get('paidAmount') or 0)
        due_date = changes['dueDate'] if 'dueDate' in changes else current.get('dueDate')
        return {
            'totalAmount': total,
            'paidAmount': paid,
            'dueAmount': total - paid,
            'dueDate': due_date,
        }

    @staticmethod
    def create(fields: Dict[str, Any], author: Identity) -> Dict[str, Any]:
        now = now_iso()
        name = fields['name']
        financials = fields.get('financials')
        activities = fields.get('activities')
        project = {
            'id': new_id('project'),
            'type': 'project',
            'name': name,
            'description': fields.get('description') or '',
            'clientId': fields.get('clientId') or None,
            'status': fields.get('status') or 'planning',
            'location': fields.get('location') or None,
            'imageUrl': fields.get('imageUrl') or None,
            'startDate': fields.get('startDate') or now,
            'dueDate': fields.get('dueDate') or None,
            'modules': [ProjectService.make_module(m) for m in fields.get('modules') or []],
            'financials': ProjectService.compute_financials(None, financials or {}),
            'documents': fields.get('documents') or [],
            'activities': activities if activities is not None else [
                ProjectService.make_activity('project_created', 'Project Created', f'Project "{name}" was created'),
            ],
            'createdAt': now,
            'createdBy': author.id,
            'createdByName': author.name,
        }
        database.put_item(project)
        logger.info("Project %s created by %s", project['id'], author.id)
        return project

    @staticmethod
    def update(project: Dict[str, Any], updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Actualización parcial; si llegan finanzas se recalcula el saldo."""
        if updates.get('financials') is not None:
            updates = {**updates, 'financials': ProjectService.compute_financials(None, updates['financials'])}
        return database.update_item(project['id'], {**updates, 'updatedAt': now_iso()})

    @staticmethod
    def delete(project_id: str):
        database.delete_item(project_id)
        logger.info("Project %s deleted", project_id)

    @staticmethod
    def add_module(project: Dict[str, Any], fields: Dict[str, Any]) -> Dict[str, Any]:
        module = ProjectService.make_module(fields)
        activity = ProjectService.make_activity(
            'module_added', 'Module Added', f'Module "{module["name"]}" was added to the project')
        database.update_item(project['id'], {
            'modules': [*(project.get('modules') or []), module],
            'activities': [*(project.get('activities') or []), activity],
            'updatedAt': module['createdAt'],
        })
        return module

    @staticmethod
    def update_module(project: Dict[str, Any], module_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Modifica en sitio un módulo por id.

        Devuelve el módulo actualizado o None si el proyecto no lo contiene.
        Un cambio de estado deja una actividad ``module_status_changed``.
        """
        modules = project.get('modules') or []
        target = next((m for m in modules if m.get('id') == module_id), None)
        if target is None:
            return None
        now = now_iso()
        status = changes.get('status')
        merged = {**target, **{k: v for k, v in changes.items() if k != 'status'}, 'updatedAt': now}
        if status:
            merged['status'] = status
        updates = {
            'modules': [merged if m is target else m for m in modules],
            'updatedAt': now,
        }
        if status:
            title = 'Module Completed' if status == 'completed' else 'Module Updated'
            activity = ProjectService.make_activity(
                'module_status_changed', title, f'Module "{target.get("name")}" status changed to {status}')
            updates['activities'] = [*(project.get('activities') or []), activity]
        database.update_item(project['id'], updates)
        return merged

    @staticmethod
    def update_financials(project: Dict[str, Any], changes: Dict[str, Any]) -> Dict[str, Any]:
        """Actualiza finanzas y registra un pago si ``paidAmount`` cambió."""
        current = project.get('financials') or {}
        financials = ProjectService.compute_financials(current, changes)
        activities = list(project.get('activities') or [])
        paid = changes.get('paidAmount')
        if paid is not None and paid != current.get('paidAmount'):
            activities.append(ProjectService.make_activity(
                'payment_received', 'Payment Received', f'Payment of ₹{paid:,} recorded'))
        database.update_item(project['id'], {
            'financials': financials,
            'activities': activities,
            'updatedAt': now_iso(),
        })
        return financials

    @staticmethod
    def add_document(project: Dict[str, Any], fields: Dict[str, Any], author: Identity) -> Dict[str, Any]:
        document = {
            'id': new_id('doc'),
            'name': fields['name'],
            'url': fields.get('url') or None,
            'type': fields.get('type') or 'other',
            'uploadedAt': now_iso(),
            'uploadedBy': author.id,
            'uploadedByName': author.name,
        }
        activity = ProjectService.make_activity(
            'document_uploaded', 'Document Uploaded', f'Document "{document["name"]}" was uploaded')
        database.update_item(project['id'], {
            'documents': [*(project.get('documents') or []), document],
            'activities': [*(project.get('activities') or []), activity],
            'updatedAt': document['uploadedAt'],
        })
        return document

    @staticmethod
    def delete_document(project: Dict[str, Any], doc_id: str) -> bool:
        """Quita un documento por id; False si el proyecto no lo tenía."""
        documents = project.get('documents') or []
        remaining = [d for d in documents if d.get('id') != doc_id]
        if len(remaining) == len(documents):
            return False
        removed = next(d for d in documents if d.get('id') == doc_id)
        activity = ProjectService.make_activity(
            'document_deleted', 'Document Deleted', f'Document "{removed.get("name")}" was deleted')
        database.update_item(project['id'], {
            'documents': remaining,
            'activities': [*(project.get('activities') or []), activity],
            'updatedAt': activity['timestamp'],
        })
        return True

    @staticmethod
    def add_activity(project: Dict[str, Any], fields: Dict[str, Any], author: Identity) -> Dict[str, Any]:
        activity = ProjectService.make_activity(
            fields.get('type') or 'general', fields['title'], fields.get('description') or '', author)
        database.update_item(project['id'], {
            'activities': [*(project.get('activities') or []), activity],
            'updatedAt': activity['timestamp'],
        })
        return activity
