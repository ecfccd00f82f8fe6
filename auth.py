from datetime import datetime, timedelta, timezone
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Depends, HTTPException, Request
from jose import JWTError, jwt
from passlib.context import CryptContext

import config
from database import get_db
from logging_config import logger

# Use pbkdf2_sha256 to avoid external bcrypt backend issues
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def token_for_user(user: dict) -> str:
    return create_access_token({
        "sub": str(user["_id"]),
        "email": user["email"],
        "name": user["name"],
    })


def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password):
    return pwd_context.hash(password)


def get_user_by_email(db, email: str):
    return db["user"].find_one({"email": email.lower().strip()})


def decode_token(db, token: str):
    payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    user_id: str = payload.get("sub")
    if not user_id:
        raise HTTPException(401, "Invalid or expired token")
    try:
        user = db["user"].find_one({"_id": ObjectId(user_id)})
    except InvalidId:
        raise HTTPException(401, "Invalid or expired token")
    if not user:
        raise HTTPException(401, "User not found")
    return user


def get_current_user(request: Request, token: Optional[str] = None, db=Depends(get_db)):
    # Prefer Authorization header; fallback to token query parameter
    auth = request.headers.get("authorization")
    parsed_token = None
    if auth and auth.lower().startswith("bearer "):
        parsed_token = auth.split(" ", 1)[1].strip()
    elif token:
        parsed_token = token
    if not parsed_token:
        raise HTTPException(401, "Missing or invalid Authorization header")
    try:
        return decode_token(db, parsed_token)
    except JWTError as e:
        logger.warning("JWT rejected for %s: %s", request.url.path, e)
        raise HTTPException(401, "Invalid or expired token")
