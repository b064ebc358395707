# school_calendar/main.py
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, Query, Depends
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from school_calendar import auth, config, merge, store
from school_calendar.db import engine, get_db, init_db
from school_calendar.errors import CalendarError, StorageError, ValidationError
from school_calendar.schemas import (
    LoginRequest, DateConfigRequest, EventCreate, MaterialCreate, DescriptionRequest,
)

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s  %(levelname)-8s  %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting school calendar API...")
    if config.ADMIN_PASSWORD == config.DEFAULT_ADMIN_PASSWORD:
        logger.warning("ADMIN_PASSWORD is not set; using the built-in default")
    if config.SESSION_SECRET == config.DEFAULT_SESSION_SECRET:
        logger.warning("SESSION_SECRET is not set; session cookies use the built-in key")
    await init_db()
    logger.info("Database tables initialized")
    yield
    logger.info("Shutting down...")
    await engine.dispose()


app = FastAPI(title="School Calendar API", version="1.0.0", lifespan=lifespan)

# ---------- Middleware ----------
app.add_middleware(
    SessionMiddleware,
    secret_key=config.SESSION_SECRET,
    max_age=config.ADMIN_SESSION_TTL,
    same_site="lax",
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------- Error shape: always {"error": ...} ----------
@app.exception_handler(CalendarError)
async def calendar_error_handler(request: Request, exc: CalendarError):
    if isinstance(exc, StorageError):
        # details were logged where the failure happened
        return JSONResponse(status_code=exc.status_code, content={"error": "Server error"})
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"error": "Invalid request body"})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Server error"})


# ---------- Admin session ----------
@app.post("/api/admin/login")
async def admin_login(body: LoginRequest, request: Request):
    if not auth.login(request.session, body.password):
        return JSONResponse(status_code=401, content={"error": "Invalid password"})
    return {"success": True}


@app.post("/api/admin/logout")
async def admin_logout(request: Request):
    auth.logout(request.session)
    return {"success": True}


@app.get("/api/admin/status")
async def admin_status(request: Request):
    return {"isAdmin": auth.is_admin(request.session)}


# ---------- Date configurations ----------
@app.get("/api/date-configs")
async def get_date_configs(db: AsyncSession = Depends(get_db)):
    return merge.group_day_configs(await store.get_all_day_configs(db))


@app.post("/api/date-configs", dependencies=[Depends(auth.require_admin)])
async def save_date_config(body: DateConfigRequest, db: AsyncSession = Depends(get_db)):
    if body.config is None:
        raise ValidationError("Missing config")
    partial = body.config.model_dump(exclude_none=True)
    await store.upsert_day_config(db, body.dateKey, partial)
    return {"success": True}


# ---------- Events ----------
@app.get("/api/events")
async def get_events(
    startDate: Optional[str] = Query(None),
    endDate: Optional[str] = Query(None),
    department: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    rows = await store.get_events(db, startDate, endDate, department)
    return merge.group_events(rows)


# TODO: decide with the front-end whether creating events should require admin like deleting does
@app.post("/api/events")
async def create_event(body: EventCreate, db: AsyncSession = Depends(get_db)):
    event = await store.insert_event(db, {
        "date": body.dateKey,
        "title": body.title,
        "time": body.time,
        "department": body.department,
        "description": body.description,
    })
    return merge.event_to_dict(event)


@app.delete("/api/events/{event_id}", dependencies=[Depends(auth.require_admin)])
async def remove_event(event_id: int, db: AsyncSession = Depends(get_db)):
    await store.delete_event(db, event_id)
    return {"success": True}


# ---------- Daily materials ----------
@app.get("/api/materials")
async def get_materials(dateKey: Optional[str] = Query(None), db: AsyncSession = Depends(get_db)):
    rows = await store.get_materials(db, dateKey)
    by_date = merge.group_materials(rows)
    return by_date.get(dateKey, {})


@app.post("/api/materials", dependencies=[Depends(auth.require_admin)])
async def create_material(body: MaterialCreate, db: AsyncSession = Depends(get_db)):
    material = await store.insert_material(db, {
        "date": body.dateKey,
        "grade": body.grade,
        "title": body.title,
        "link": body.link,
        "type": body.type,
    })
    return merge.material_to_dict(material)


@app.delete("/api/materials/{material_id}", dependencies=[Depends(auth.require_admin)])
async def remove_material(material_id: int, db: AsyncSession = Depends(get_db)):
    await store.delete_material(db, material_id)
    return {"success": True}


# ---------- Date descriptions ----------
@app.get("/api/descriptions")
async def get_descriptions(db: AsyncSession = Depends(get_db)):
    return merge.group_descriptions(await store.get_all_descriptions(db))


@app.post("/api/descriptions", dependencies=[Depends(auth.require_admin)])
async def save_description(body: DescriptionRequest, db: AsyncSession = Depends(get_db)):
    await store.upsert_description(db, body.dateKey, body.description)
    return {"success": True}


# ---------- Health ----------
@app.get("/api/health")
async def health(db: AsyncSession = Depends(get_db)):
    try:
        await store.ping(db)
    except StorageError:
        return JSONResponse(status_code=500, content={"status": "error", "database": "disconnected"})
    return {"status": "ok", "database": "connected"}


# ---------- Front-end ----------
class SPAStaticFiles(StaticFiles):
    """Serve the built front-end; unknown paths get index.html."""

    async def get_response(self, path: str, scope):
        try:
            return await super().get_response(path, scope)
        except StarletteHTTPException as e:
            if e.status_code != 404:
                raise
            return await super().get_response("index.html", scope)


if (config.PUBLIC_DIR / "index.html").is_file():
    app.mount("/", SPAStaticFiles(directory=config.PUBLIC_DIR, html=True), name="public")
else:
    logger.info("No front-end found at %s; serving the API only", config.PUBLIC_DIR)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
