import logging
from contextlib import asynccontextmanager

import socketio
from bson.errors import InvalidId
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

import config
import database
import realtime
from cleanup import cleanup_service
from database import utcnow
from routes_admin import router as admin_router
from routes_auth import router as auth_router
from routes_bills import router as bills_router
from routes_chat import router as chat_router
from routes_food import router as food_router
from routes_guest_history import router as guest_history_router
from routes_guests import router as guests_router
from routes_orders import router as orders_router
from routes_rooms import router as rooms_router
from routes_tickets import router as tickets_router

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    if not config.JWT_SECRET:
        raise RuntimeError("JWT_SECRET is not defined")
    if database.db is not None:
        database.ensure_indexes()
    if config.TICKET_CLEANUP_ENABLED:
        cleanup_service.start()
    logger.info("HotelFlow API started (%s)", config.ENV)
    yield
    await cleanup_service.stop()


app = FastAPI(title="HotelFlow API", version=VERSION, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ----------------------------
# Error envelope
# ----------------------------
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail
    if exc.status_code == 404 and message == "Not Found":
        message = f"Cannot {request.method} {request.url.path}"
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": message},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        errors.append({"field": ".".join(loc), "message": err.get("msg", "").replace("Value error, ", "")})
    return JSONResponse(status_code=400, content={"success": False, "errors": errors})


@app.exception_handler(InvalidId)
async def invalid_id_handler(request: Request, exc: InvalidId):
    return JSONResponse(status_code=400, content={"success": False, "message": "Invalid id"})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"success": False, "message": "Server error"})


# ----------------------------
# Root & health
# ----------------------------
@app.get("/")
def read_root():
    return {"success": True, "message": "Welcome to HotelFlow API", "version": VERSION}


@app.get("/health")
def health():
    return {"status": "ok", "timestamp": utcnow()}


@app.get("/test")
def test_database():
    response = {
        "backend": "Running",
        "database": "Not Available",
        "database_url": "Set" if config.DATABASE_URL else "Not Set",
        "database_name": "Set" if config.DATABASE_NAME else "Not Set",
        "connection_status": "Not Connected",
        "collections": [],
    }
    if database.db is not None:
        response["database"] = "Available"
        response["connection_status"] = "Connected"
        try:
            response["collections"] = database.db.list_collection_names()
            response["database"] = "Connected & Working"
        except Exception as e:
            response["database"] = f"Connected but Error: {str(e)[:80]}"
    return response


# guest history must be matched before /api/guests/{guest_id}
for router in (
    auth_router,
    rooms_router,
    guest_history_router,
    guests_router,
    bills_router,
    food_router,
    orders_router,
    tickets_router,
    chat_router,
    admin_router,
):
    app.include_router(router)

asgi_app = socketio.ASGIApp(realtime.sio, other_asgi_app=app)


def run():
    import uvicorn

    uvicorn.run("main:asgi_app", host="0.0.0.0", port=config.PORT)


if __name__ == "__main__":
    run()
