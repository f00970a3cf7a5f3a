"""Aplicación FastAPI principal del backend CRM.

Expone autenticación y CRUD de usuarios, clientes, proyectos y tareas sobre
un almacén de tabla única. Todas las respuestas usan el sobre
``{"success": true, ...}`` o ``{"error": "..."}``.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional, Union
from fastapi import FastAPI, Depends, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException
from config import get_settings
from database import init_db
from models import now_iso
from security import (
    Identity, get_current_user, require_capability, has_capability,
    MANAGE_USERS, VIEW_BLOCKED_USERS, strip_password,
)
from users import UserService, LoginError, MIN_PASSWORD_LENGTH
from clients import ClientService
from projects import ProjectService
from tasks import TaskService

settings = get_settings()

logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

Amount = Union[int, float]

# ---------------------------- Schemas ----------------------------
class LoginPayload(BaseModel):
    """Payload para inicio de sesión y obtención de JWT."""
    email: Optional[str] = None
    password: Optional[str] = None

class CreateUserPayload(BaseModel):
    """Payload para alta de usuarios nuevos (solo admin)."""
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None

class ClientPayload(BaseModel):
    """Campos de cliente; en el alta ``notes`` es el texto de la primera nota."""
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    status: Optional[str] = None
    source: Optional[str] = None
    notes: Optional[str] = None

class TextPayload(BaseModel):
    """Cuerpo de notas de cliente y comentarios de tarea."""
    text: Optional[str] = None

class FinancialsPayload(BaseModel):
    totalAmount: Optional[Amount] = None
    paidAmount: Optional[Amount] = None
    dueDate: Optional[str] = None

class ProjectPayload(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    clientId: Optional[str] = None
    status: Optional[str] = None
    startDate: Optional[str] = None
    dueDate: Optional[str] = None
    location: Optional[str] = None
    imageUrl: Optional[str] = None
    modules: Optional[List[Dict[str, Any]]] = None
    financials: Optional[FinancialsPayload] = None
    documents: Optional[List[Dict[str, Any]]] = None
    activities: Optional[List[Dict[str, Any]]] = None

class ModulePayload(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    assignedTo: Optional[str] = None
    assignedToName: Optional[str] = None
    estimatedDays: Optional[Amount] = None

class ModuleUpdatePayload(BaseModel):
    status: Optional[str] = None
    assignedTo: Optional[str] = None
    assignedToName: Optional[str] = None
    estimatedDays: Optional[Amount] = None

class DocumentPayload(BaseModel):
    name: Optional[str] = None
    url: Optional[str] = None
    type: Optional[str] = None

class ActivityPayload(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    type: Optional[str] = None

class TaskPayload(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    assignedTo: Optional[str] = None
    assignedToName: Optional[str] = None
    projectId: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    dueDate: Optional[str] = None

# partial_fields: Campos enviados por el cliente; los de ``truthy`` solo si no vacíos.
def partial_fields(payload: BaseModel, truthy=(), skip=()) -> Dict[str, Any]:
    fields = payload.model_dump(exclude_unset=True)
    for key in truthy:
        if key in fields and not fields[key]:
            del fields[key]
    for key in skip:
        fields.pop(key, None)
    return fields

# ------------------------- Startup Event -------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Inicializa la tabla y crea el usuario admin por defecto si falta."""
    init_db()
    try:
        UserService.ensure_admin(settings.admin_email, settings.admin_password)
    except Exception:
        logger.exception("Error initializing admin")
    logger.info("CRM API ready (db=%s)", settings.database_url.split(':', 1)[0])
    yield

app = FastAPI(title="CRM API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# strip_trailing_slash: "/api/clients/" se atiende igual que "/api/clients".
@app.middleware("http")
async def strip_trailing_slash(request: Request, call_next):
    path = request.scope["path"]
    if len(path) > 1 and path.endswith("/"):
        request.scope["path"] = path.rstrip("/") or "/"
    return await call_next(request)

@app.middleware("http")
async def log_requests(request: Request, call_next):
    response = await call_next(request)
    logger.info("%s %s -> %s", request.method, request.url.path, response.status_code)
    return response

# ------------------------ Error Envelopes ------------------------
@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=getattr(exc, 'headers', None))

@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError):
    details = [{"field": ".".join(str(p) for p in e.get('loc', ())), "message": e.get('msg')} for e in exc.errors()]
    return JSONResponse(status_code=400, content={"error": "Invalid request body", "details": details})

@app.exception_handler(Exception)
async def unexpected_error(request: Request, exc: Exception):
    """Registra cualquier error no controlado y responde 500 genérico."""
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    content = {"error": "Internal server error"}
    if settings.is_development:
        content["message"] = str(exc)
    return JSONResponse(status_code=500, content=content)

# --------------------------- Auth Routes -------------------------
@app.post('/api/auth/login')
def login(payload: LoginPayload):
    """Autentica usuario y devuelve token JWT para futuras peticiones."""
    if not payload.email or not payload.password:
        raise HTTPException(status_code=400, detail="Email and password are required")
    try:
        result = UserService.authenticate(payload.email, payload.password)
    except LoginError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"success": True, **result}

@app.get('/api/auth/me')
def me(identity: Identity = Depends(get_current_user)):
    """Devuelve el registro del propio usuario sin contraseña."""
    user = UserService.get(identity.id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return {"success": True, "user": strip_password(user)}

@app.get('/api/auth/users')
def list_users(identity: Identity = Depends(get_current_user)):
    """Lista usuarios; quien no es admin no ve a los bloqueados."""
    users = UserService.list_users(include_blocked=has_capability(identity, VIEW_BLOCKED_USERS))
    return {"success": True, "users": users}

@app.post('/api/auth/users', status_code=status.HTTP_201_CREATED)
def create_user(payload: CreateUserPayload, admin: Identity = Depends(require_capability(MANAGE_USERS))):
    """Registra un nuevo usuario (solo accesible para rol admin)."""
    if not payload.name or not payload.email or not payload.password:
        raise HTTPException(status_code=400, detail="Name, email, and password are required")
    if len(payload.password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(status_code=400, detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if UserService.email_taken(payload.email):
        raise HTTPException(status_code=400, detail="Email already exists")
    user = UserService.create(payload.name, payload.email, payload.password, created_by=admin.id)
    return {"success": True, "user": user}

@app.put('/api/auth/users/{user_id}/block')
def block_user(user_id: str, admin: Identity = Depends(require_capability(MANAGE_USERS))):
    user = UserService.get(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    if user.get('role') == 'admin':
        raise HTTPException(status_code=400, detail="Cannot block admin")
    UserService.set_blocked(user_id, True)
    return {"success": True, "message": "User blocked"}

@app.put('/api/auth/users/{user_id}/unblock')
def unblock_user(user_id: str, admin: Identity = Depends(require_capability(MANAGE_USERS))):
    if not UserService.get(user_id):
        raise HTTPException(status_code=404, detail="User not found")
    UserService.set_blocked(user_id, False)
    return {"success": True, "message": "User unblocked"}

@app.delete('/api/auth/users/{user_id}')
def delete_user(user_id: str, admin: Identity = Depends(require_capability(MANAGE_USERS))):
    user = UserService.get(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    if user.get('role') == 'admin':
        raise HTTPException(status_code=400, detail="Cannot delete admin")
    UserService.delete(user_id)
    return {"success": True, "message": "User deleted"}

# -------------------------- Client Routes ------------------------
# get_client_or_404: Recupera el cliente o lanza 404.
def get_client_or_404(client_id: str) -> Dict[str, Any]:
    client = ClientService.get(client_id)
    if not client:
        raise HTTPException(status_code=404, detail="Client not found")
    return client

@app.get('/api/clients')
def list_clients(identity: Identity = Depends(get_current_user)):
    return {"success": True, "clients": ClientService.list_clients()}

@app.get('/api/clients/{client_id}')
def get_client(client_id: str, identity: Identity = Depends(get_current_user)):
    return {"success": True, "client": get_client_or_404(client_id)}

@app.post('/api/clients', status_code=status.HTTP_201_CREATED)
def create_client(payload: ClientPayload, identity: Identity = Depends(get_current_user)):
    if not payload.name:
        raise HTTPException(status_code=400, detail="Client name is required")
    client = ClientService.create(payload.model_dump(), identity)
    return {"success": True, "client": client}

@app.put('/api/clients/{client_id}')
def update_client(client_id: str, payload: ClientPayload, identity: Identity = Depends(get_current_user)):
    get_client_or_404(client_id)
    updates = partial_fields(payload, truthy=('name', 'status', 'source'), skip=('notes',))
    return {"success": True, "client": ClientService.update(client_id, updates)}

@app.delete('/api/clients/{client_id}')
def delete_client(client_id: str, identity: Identity = Depends(get_current_user)):
    get_client_or_404(client_id)
    ClientService.delete(client_id)
    return {"success": True, "message": "Client deleted"}

@app.post('/api/clients/{client_id}/notes', status_code=status.HTTP_201_CREATED)
def add_client_note(client_id: str, payload: TextPayload, identity: Identity = Depends(get_current_user)):
    if not payload.text:
        raise HTTPException(status_code=400, detail="Note text is required")
    client = get_client_or_404(client_id)
    return {"success": True, "note": ClientService.add_note(client, payload.text, identity)}

# ------------------------- Project Routes ------------------------
def get_project_or_404(project_id: str) -> Dict[str, Any]:
    project = ProjectService.get(project_id)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project

@app.get('/api/projects')
def list_projects(identity: Identity = Depends(get_current_user)):
    return {"success": True, "projects": ProjectService.list_projects()}

@app.get('/api/projects/{project_id}')
def get_project(project_id: str, identity: Identity = Depends(get_current_user)):
    return {"success": True, "project": get_project_or_404(project_id)}

@app.post('/api/projects', status_code=status.HTTP_201_CREATED)
def create_project(payload: ProjectPayload, identity: Identity = Depends(get_current_user)):
    if not payload.name:
        raise HTTPException(status_code=400, detail="Project name is required")
    project = ProjectService.create(payload.model_dump(exclude_unset=True), identity)
    return {"success": True, "project": project}

@app.put('/api/projects/{project_id}')
def update_project(project_id: str, payload: ProjectPayload, identity: Identity = Depends(get_current_user)):
    project = get_project_or_404(project_id)
    updates = partial_fields(payload, truthy=('name', 'status', 'startDate'))
    if updates.get('modules') is None:
        updates.pop('modules', None)
    return {"success": True, "project": ProjectService.update(project, updates)}

@app.delete('/api/projects/{project_id}')
def delete_project(project_id: str, identity: Identity = Depends(get_current_user)):
    get_project_or_404(project_id)
    ProjectService.delete(project_id)
    return {"success": True, "message": "Project deleted"}

@app.post('/api/projects/{project_id}/modules', status_code=status.HTTP_201_CREATED)
def add_module(project_id: str, payload: ModulePayload, identity: Identity = Depends(get_current_user)):
    if not payload.name:
        raise HTTPException(status_code=400, detail="Module name is required")
    project = get_project_or_404(project_id)
    return {"success": True, "module": ProjectService.add_module(project, payload.model_dump())}

@app.put('/api/projects/{project_id}/modules/{module_id}')
def update_module(project_id: str, module_id: str, payload: ModuleUpdatePayload,
                  identity: Identity = Depends(get_current_user)):
    project = get_project_or_404(project_id)
    module = ProjectService.update_module(project, module_id, partial_fields(payload, truthy=('status',)))
    if module is None:
        raise HTTPException(status_code=404, detail="Module not found")
    return {"success": True, "message": "Module updated", "module": module}

@app.put('/api/projects/{project_id}/financials')
def update_financials(project_id: str, payload: FinancialsPayload, identity: Identity = Depends(get_current_user)):
    project = get_project_or_404(project_id)
    financials = ProjectService.update_financials(project, payload.model_dump(exclude_unset=True))
    return {"success": True, "financials": financials}

@app.post('/api/projects/{project_id}/documents', status_code=status.HTTP_201_CREATED)
def add_document(project_id: str, payload: DocumentPayload, identity: Identity = Depends(get_current_user)):
    if not payload.name:
        raise HTTPException(status_code=400, detail="Document name is required")
    project = get_project_or_404(project_id)
    return {"success": True, "document": ProjectService.add_document(project, payload.model_dump(), identity)}

@app.delete('/api/projects/{project_id}/documents/{doc_id}')
def delete_document(project_id: str, doc_id: str, identity: Identity = Depends(get_current_user)):
    project = get_project_or_404(project_id)
    if not ProjectService.delete_document(project, doc_id):
        raise HTTPException(status_code=404, detail="Document not found")
    return {"success": True, "message": "Document deleted"}

@app.post('/api/projects/{project_id}/activities', status_code=status.HTTP_201_CREATED)
def add_activity(project_id: str, payload: ActivityPayload, identity: Identity = Depends(get_current_user)):
    if not payload.title:
        raise HTTPException(status_code=400, detail="Activity title is required")
    project = get_project_or_404(project_id)
    return {"success": True, "activity": ProjectService.add_activity(project, payload.model_dump(), identity)}

# --------------------------- Task Routes -------------------------
def get_task_or_404(task_id: str) -> Dict[str, Any]:
    task = TaskService.get(task_id)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task

@app.get('/api/tasks')
def list_tasks(identity: Identity = Depends(get_current_user)):
    return {"success": True, "tasks": TaskService.list_tasks()}

@app.get('/api/tasks/my')
def my_tasks(identity: Identity = Depends(get_current_user)):
    """Tareas asignadas al usuario autenticado."""
    return {"success": True, "tasks": TaskService.list_tasks(assigned_to=identity.id)}

@app.get('/api/tasks/project/{project_id}')
def project_tasks(project_id: str, identity: Identity = Depends(get_current_user)):
    return {"success": True, "tasks": TaskService.list_tasks(project_id=project_id)}

@app.get('/api/tasks/{task_id}')
def get_task(task_id: str, identity: Identity = Depends(get_current_user)):
    return {"success": True, "task": get_task_or_404(task_id)}

@app.post('/api/tasks', status_code=status.HTTP_201_CREATED)
def create_task(payload: TaskPayload, identity: Identity = Depends(get_current_user)):
    if not payload.title:
        raise HTTPException(status_code=400, detail="Task title is required")
    return {"success": True, "task": TaskService.create(payload.model_dump(), identity)}

@app.put('/api/tasks/{task_id}')
def update_task(task_id: str, payload: TaskPayload, identity: Identity = Depends(get_current_user)):
    get_task_or_404(task_id)
    updates = partial_fields(payload, truthy=('title', 'status', 'priority'))
    return {"success": True, "task": TaskService.update(task_id, updates)}

@app.delete('/api/tasks/{task_id}')
def delete_task(task_id: str, identity: Identity = Depends(get_current_user)):
    get_task_or_404(task_id)
    TaskService.delete(task_id)
    return {"success": True, "message": "Task deleted"}

@app.post('/api/tasks/{task_id}/comments', status_code=status.HTTP_201_CREATED)
def add_task_comment(task_id: str, payload: TextPayload, identity: Identity = Depends(get_current_user)):
    if not payload.text:
        raise HTTPException(status_code=400, detail="Comment text is required")
    task = get_task_or_404(task_id)
    return {"success": True, "comment": TaskService.add_comment(task, payload.text, identity)}

# -------------------------- Utility ------------------------------
@app.get('/api/health')
def health():
    """Verificación básica de salud del servicio."""
    return {
        "status": "ok",
        "timestamp": now_iso(),
        "message": "CRM API is running",
    }

# Debe registrarse al final: cualquier ruta sin coincidencia responde 404.
@app.api_route('/{path:path}', methods=["GET", "POST", "PUT", "PATCH", "DELETE"], include_in_schema=False)
def not_found(path: str):
    raise HTTPException(status_code=404, detail="Endpoint not found")

if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app:app", host="0.0.0.0", port=settings.port)
