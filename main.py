import logging
from typing import List, Optional

from fastapi import Body, Depends, FastAPI, Query, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.database import Database

from auth import AuthGate, get_auth_gate, get_current_account
from config import CORS_ORIGINS, PORT
from database import get_database, get_db
from errors import ServiceError, Unauthorized, translate_validation_error
from logging_config import setup_logging
from repository import ClientRepository, ProjectRepository, ServiceRepository
from schemas import AccountOut, AuthResponse

setup_logging()
logger = logging.getLogger(__name__)

# App setup
app = FastAPI(title="Freelance Management API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Error rendering
@app.exception_handler(ServiceError)
def service_error_handler(request, exc: ServiceError):
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthorized) else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


@app.exception_handler(RequestValidationError)
def request_validation_handler(request, exc: RequestValidationError):
    failure = translate_validation_error(exc.errors())
    return JSONResponse(status_code=failure.status_code, content=failure.to_dict())


# Dependencies
def get_projects(db: Database = Depends(get_db)) -> ProjectRepository:
    return ProjectRepository(db)


def get_clients(db: Database = Depends(get_db)) -> ClientRepository:
    return ClientRepository(db)


def get_services(db: Database = Depends(get_db)) -> ServiceRepository:
    return ServiceRepository(db)


# Public endpoints
@app.get("/api", tags=["meta"])
def read_root():
    return {
        "message": "Freelance Management API is running!",
        "version": app.version,
        "endpoints": {
            "auth": "/api/auth",
            "projects": "/api/projects",
            "clients": "/api/clients",
            "services": "/api/services",
            "dashboard": "/api/projects/stats/dashboard",
        },
    }


@app.get("/test", tags=["meta"])
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_name": "❌ Not Set",
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        db = get_database()
        response["database"] = "✅ Available"
        response["database_name"] = db.name
        response["collections"] = db.list_collection_names()
        response["connection_status"] = "Connected"
    except Exception as e:
        logger.warning("Database diagnostic failed: %s", e)
        response["database"] = f"❌ Error: {str(e)[:80]}"
    return response


# Authentication
@app.post("/api/auth/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED, tags=["auth"])
def register(payload: dict = Body(...), gate: AuthGate = Depends(get_auth_gate)):
    account, token = gate.register(payload)
    return AuthResponse(account=account, access_token=token)


@app.post("/api/auth/login", response_model=AuthResponse, tags=["auth"])
def login(payload: dict = Body(...), gate: AuthGate = Depends(get_auth_gate)):
    account, token = gate.login(payload)
    return AuthResponse(account=account, access_token=token)


@app.get("/api/auth/profile", response_model=AccountOut, tags=["auth"])
def profile(current_account: dict = Depends(get_current_account)):
    return current_account


@app.post("/api/auth/verify-token", tags=["auth"])
def verify_token(current_account: dict = Depends(get_current_account)):
    return {"message": "Token is valid", "account": AccountOut(**current_account)}


# Projects
@app.get("/api/projects", tags=["projects"])
def list_projects(projects: ProjectRepository = Depends(get_projects)) -> List[dict]:
    return projects.list()


# Registered before /{project_id} so the literal paths win
@app.get("/api/projects/stats/dashboard", tags=["projects"])
def dashboard_stats(projects: ProjectRepository = Depends(get_projects)):
    return projects.dashboard_stats()


@app.get("/api/projects/next-number", tags=["projects"])
def next_project_number(projects: ProjectRepository = Depends(get_projects)):
    return {"numberOrder": projects.next_order_number()}


@app.get("/api/projects/{project_id}", tags=["projects"])
def get_project(project_id: str, projects: ProjectRepository = Depends(get_projects)):
    return projects.get(project_id)


@app.post("/api/projects", status_code=status.HTTP_201_CREATED, tags=["projects"])
def create_project(payload: dict = Body(...), projects: ProjectRepository = Depends(get_projects)):
    return projects.create(payload)


@app.put("/api/projects/{project_id}", tags=["projects"])
def update_project(project_id: str, payload: dict = Body(...),
                   projects: ProjectRepository = Depends(get_projects)):
    return projects.update(project_id, payload)


@app.delete("/api/projects/{project_id}", tags=["projects"])
def delete_project(project_id: str, projects: ProjectRepository = Depends(get_projects)):
    removed = projects.delete(project_id)
    return {"message": "Project deleted successfully", "project": removed}


@app.post("/api/projects/{project_id}/comments", status_code=status.HTTP_201_CREATED, tags=["comments"])
def add_comment(project_id: str, payload: dict = Body(...),
                projects: ProjectRepository = Depends(get_projects)):
    comment, project = projects.append_comment(project_id, payload)
    return {"message": "Comment added successfully", "comment": comment, "project": project}


@app.get("/api/projects/{project_id}/comments", tags=["comments"])
def list_comments(project_id: str, client_only: Optional[bool] = Query(False, alias="clientOnly"),
                  projects: ProjectRepository = Depends(get_projects)) -> List[dict]:
    return projects.list_comments(project_id, client_only=client_only)


# Clients
@app.get("/api/clients", tags=["clients"])
def list_clients(clients: ClientRepository = Depends(get_clients)) -> List[dict]:
    return clients.list()


@app.get("/api/clients/{client_id}", tags=["clients"])
def get_client(client_id: str, clients: ClientRepository = Depends(get_clients)):
    return clients.get(client_id)


@app.post("/api/clients", status_code=status.HTTP_201_CREATED, tags=["clients"])
def create_client(payload: dict = Body(...), clients: ClientRepository = Depends(get_clients)):
    return clients.create(payload)


@app.put("/api/clients/{client_id}", tags=["clients"])
def update_client(client_id: str, payload: dict = Body(...),
                  clients: ClientRepository = Depends(get_clients)):
    return clients.update(client_id, payload)


@app.delete("/api/clients/{client_id}", tags=["clients"])
def delete_client(client_id: str, clients: ClientRepository = Depends(get_clients)):
    removed = clients.delete(client_id)
    return {"message": "Client deleted successfully", "client": removed}


# Services
@app.get("/api/services", tags=["services"])
def list_services(services: ServiceRepository = Depends(get_services)) -> List[dict]:
    return services.list()


@app.get("/api/services/{service_id}", tags=["services"])
def get_service(service_id: str, services: ServiceRepository = Depends(get_services)):
    return services.get(service_id)


@app.post("/api/services", status_code=status.HTTP_201_CREATED, tags=["services"])
def create_service(payload: dict = Body(...), services: ServiceRepository = Depends(get_services)):
    return services.create(payload)


@app.put("/api/services/{service_id}", tags=["services"])
def update_service(service_id: str, payload: dict = Body(...),
                   services: ServiceRepository = Depends(get_services)):
    return services.update(service_id, payload)


@app.delete("/api/services/{service_id}", tags=["services"])
def delete_service(service_id: str, services: ServiceRepository = Depends(get_services)):
    removed = services.delete(service_id)
    return {"message": "Service deleted successfully", "service": removed}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)
