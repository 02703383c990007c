from contextlib import asynccontextmanager
from typing import Any, Dict, List

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse, RedirectResponse, Response
from starlette.middleware.sessions import SessionMiddleware

import services
from app_logging import configure_logging, correlation_context, get_logger
from auth import ROLE_ADMIN, ROLE_USER, require_roles, router as auth_router, session_user
from config import BASE_DIR, get_settings
from database import connect, ensure_indexes
from results import Invalid, NotFound, Outcome
from schemas import ClassRoom, Student, Subject
from seed import run_startup_seed, source_from_settings

settings = get_settings()
configure_logging(level=settings.log_level, environment=settings.environment)
logger = get_logger("academic.main", component="app")

STATIC_DIR = BASE_DIR / "static"


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Seeding finishes before the server takes requests, so an empty-collection
    # check never races an API create.
    connect()
    ensure_indexes()
    if settings.seed_on_startup:
        run_startup_seed(source_from_settings(settings))
    else:
        logger.info("seed_disabled")
    yield


app = FastAPI(title=settings.app_name, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(SessionMiddleware, secret_key=settings.session_secret)
app.include_router(auth_router)


@app.middleware("http")
async def bind_correlation_id(request: Request, call_next):
    with correlation_context(request.headers.get("X-Request-ID")) as cid:
        response = await call_next(request)
        response.headers["X-Request-ID"] = cid
        return response


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors: Dict[str, str] = {}
    for error in exc.errors():
        loc = error.get("loc") or ("body",)
        errors[str(loc[-1])] = error.get("msg", "Invalid value")
    return JSONResponse(status_code=400, content={"message": "Validation failed", "errors": errors})


def respond(outcome: Outcome[Any]) -> Any:
    """Map a service outcome onto the HTTP response."""
    if isinstance(outcome, NotFound):
        return JSONResponse(status_code=404, content={"message": outcome.message})
    if isinstance(outcome, Invalid):
        return JSONResponse(status_code=400, content={"message": outcome.message, "errors": outcome.errors})
    return outcome.value


def respond_deleted(outcome: Outcome[Any]) -> Response:
    if isinstance(outcome, (NotFound, Invalid)):
        return respond(outcome)
    return Response(status_code=204)


any_role = Depends(require_roles(ROLE_ADMIN, ROLE_USER))
admin_only = Depends(require_roles(ROLE_ADMIN))


# Pages


@app.get("/")
def home():
    return FileResponse(STATIC_DIR / "home.html")


@app.get("/index")
def index(request: Request):
    if session_user(request) is None:
        return RedirectResponse("/login-form.html", status_code=303)
    return FileResponse(STATIC_DIR / "index.html")


@app.get("/login.html")
def login_page():
    return FileResponse(STATIC_DIR / "login.html")


@app.get("/login-form.html")
def login_form_page():
    return FileResponse(STATIC_DIR / "login-form.html")


# Students


@app.get("/api/students", dependencies=[any_role])
def list_students() -> List[Dict[str, Any]]:
    return services.list_students()


@app.get("/api/students/major-options", dependencies=[any_role])
def major_options():
    return {"options": services.major_options()}


@app.get("/api/students/statistics", dependencies=[any_role])
def student_statistics():
    return services.student_statistics()


@app.get("/api/students/{student_id}", dependencies=[any_role])
def get_student(student_id: str):
    return respond(services.get_student(student_id))


@app.post("/api/students", status_code=201, dependencies=[any_role])
def create_student(payload: Student):
    return respond(services.create_student(payload.model_dump(mode="json")))


@app.put("/api/students/{student_id}", dependencies=[any_role])
def update_student(student_id: str, payload: Student):
    return respond(services.update_student(student_id, payload.model_dump(mode="json")))


@app.delete("/api/students/{student_id}", status_code=204, dependencies=[any_role])
def delete_student(student_id: str):
    return respond_deleted(services.delete_student(student_id))


# Subjects


@app.get("/api/subjects", dependencies=[any_role])
def list_subjects() -> List[Dict[str, Any]]:
    return services.list_subjects()


@app.get("/api/subjects/{subject_id}", dependencies=[any_role])
def get_subject(subject_id: str):
    return respond(services.get_subject(subject_id))


@app.post("/api/subjects", status_code=201, dependencies=[any_role])
def create_subject(payload: Subject):
    return respond(services.create_subject(payload.model_dump(mode="json")))


@app.put("/api/subjects/{subject_id}", dependencies=[any_role])
def update_subject(subject_id: str, payload: Subject):
    return respond(services.update_subject(subject_id, payload.model_dump(mode="json")))


@app.delete("/api/subjects/{subject_id}", status_code=204, dependencies=[any_role])
def delete_subject(subject_id: str):
    return respond_deleted(services.delete_subject(subject_id))


# Classes


@app.get("/api/classes", dependencies=[admin_only])
def list_classes() -> List[Dict[str, Any]]:
    return services.list_classes()


@app.get("/api/classes/{class_id}", dependencies=[admin_only])
def get_class(class_id: str):
    return respond(services.get_class(class_id))


@app.post("/api/classes", status_code=201, dependencies=[admin_only])
def create_class(payload: ClassRoom):
    return respond(services.create_class(payload.model_dump(mode="json")))


@app.put("/api/classes/{class_id}", dependencies=[admin_only])
def update_class(class_id: str, payload: ClassRoom):
    return respond(services.update_class(class_id, payload.model_dump(mode="json")))


@app.delete("/api/classes/{class_id}", status_code=204, dependencies=[admin_only])
def delete_class(class_id: str):
    return respond_deleted(services.delete_class(class_id))


@app.post("/api/classes/{class_id}/students/{student_id}", dependencies=[admin_only])
def add_student_to_class(class_id: str, student_id: str):
    return respond(services.add_student_to_class(class_id, student_id))


@app.delete("/api/classes/{class_id}/students/{student_id}", dependencies=[admin_only])
def remove_student_from_class(class_id: str, student_id: str):
    return respond(services.remove_student_from_class(class_id, student_id))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
