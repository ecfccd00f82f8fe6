import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, HTTPException, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import DuplicateKeyError, PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

import config
import database
from auth import (
    get_current_user, get_password_hash, get_user_by_email,
    token_for_user, verify_password,
)
from database import get_db, ensure_indexes
from file_routes import router as file_router
from logging_config import logger
from schemas import User, SignUpRequest, LoginRequest, TokenResponse, UserSummary


@asynccontextmanager
async def lifespan(app: FastAPI):
    ensure_indexes(database.db)
    logger.info("API ready, database '%s'", config.DATABASE_NAME)
    yield
    database.client.close()


app = FastAPI(title="Drive-like API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info("%s %s -> %s (%.1fms)", request.method, request.url.path, status_code, elapsed_ms)


# Error envelope: every failure is {"error": "<message>"}

@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        {"error": str(exc.detail)},
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        loc = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
        message = f"{loc}: {first.get('msg')}" if loc else first.get("msg", "Invalid request")
    else:
        message = "Invalid request"
    return JSONResponse({"error": message}, status_code=400)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse({"error": "Server error"}, status_code=500)


# Auth routes
@app.post(f"{config.API_PREFIX}/signup", status_code=201, response_model=dict)
def signup(payload: SignUpRequest, db=Depends(get_db)):
    name = (payload.name or "").strip()
    if not payload.email or not name or not payload.password:
        raise HTTPException(400, "email, name, and password are required")

    now = datetime.now(timezone.utc)
    user_doc = User(
        email=payload.email.lower().strip(),
        name=name,
        password_hash=get_password_hash(payload.password),
        created_at=now,
        updated_at=now,
    ).model_dump()
    try:
        result = db["user"].insert_one(user_doc)
    except DuplicateKeyError:
        raise HTTPException(409, "Email already registered")

    logger.info("New user signed up: %s", user_doc["email"])
    return {
        "id": str(result.inserted_id),
        "email": user_doc["email"],
        "name": user_doc["name"],
        "created_at": user_doc["created_at"],
    }


@app.post(f"{config.API_PREFIX}/login", response_model=TokenResponse)
def login(payload: LoginRequest, db=Depends(get_db)):
    if not payload.email or not payload.password:
        raise HTTPException(400, "email and password are required")

    user = get_user_by_email(db, payload.email)
    if not user or not verify_password(payload.password, user.get("password_hash", "")):
        logger.warning("Failed login for %s", payload.email)
        raise HTTPException(401, "invalid credentials")

    return TokenResponse(
        access_token=token_for_user(user),
        user=UserSummary(id=str(user["_id"]), email=user["email"], name=user["name"]),
    )


@app.get(f"{config.API_PREFIX}/me", response_model=dict)
def me(user=Depends(get_current_user), db=Depends(get_db)):
    agg = list(db["file"].aggregate([
        {"$match": {"owner": user["_id"]}},
        {"$group": {"_id": None, "total": {"$sum": "$size"}}},
    ]))
    name = user.get("name") or ""
    return {
        "username": name,
        "email": user["email"],
        "avatar_initial": name[:1].upper() or "?",
        "storage_used": agg[0]["total"] if agg else 0,
        "storage_total": config.STORAGE_QUOTA_BYTES,
    }


# Root and health
@app.get(f"{config.API_PREFIX}/health")
def health(db=Depends(get_db)):
    try:
        db.command("ping")
        db_state = "connected"
    except PyMongoError as e:
        db_state = str(e)
    return {
        "ok": True,
        "service": "drive-backend",
        "db": db_state,
        "time": datetime.now(timezone.utc).isoformat(),
    }


app.include_router(file_router, prefix=config.API_PREFIX, tags=["files"])
