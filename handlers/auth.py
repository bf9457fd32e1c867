import logging
import os
from datetime import timedelta
from typing import Any, Dict

import jwt
from fastapi import HTTPException
from passlib.context import CryptContext
from pymongo.errors import DuplicateKeyError

from database import collection, create_document, now
from handlers.common import find_by_id, serialize
from schemas import CreateUserInput, LoginInput, User

logger = logging.getLogger(__name__)

# Security/JWT setup
JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me")
JWT_EXPIRES_MIN = int(os.getenv("JWT_EXPIRES_MIN", "60"))
JWT_ALGORITHM = "HS256"
password_ctx = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return password_ctx.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return password_ctx.verify(password, hashed)


def public_user(user: dict) -> Dict[str, Any]:
    return serialize(user, hidden=("password_hash",))


def create_token(user: dict) -> str:
    issued = now()
    payload = {
        "sub": str(user["_id"]),
        "email": user.get("email"),
        "role": user.get("role", "customer"),
        "exp": issued + timedelta(minutes=JWT_EXPIRES_MIN),
        "iat": issued,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")


def register(payload: CreateUserInput) -> Dict[str, Any]:
    if collection("user").find_one({"email": payload.email}):
        raise HTTPException(status_code=409, detail="User with this email already exists")
    doc = User(
        email=payload.email,
        password_hash=hash_password(payload.password),
        full_name=payload.full_name,
        phone=payload.phone,
        role=payload.role,
    )
    try:
        user_id = create_document("user", doc)
    except DuplicateKeyError:
        raise HTTPException(status_code=409, detail="User with this email already exists")
    user = find_by_id("user", user_id)
    logger.info("Registered user %s (%s)", user_id, payload.role)
    return {"user": public_user(user), "token": create_token(user)}


def login(payload: LoginInput) -> Dict[str, Any]:
    user = collection("user").find_one({"email": payload.email})
    if not user or not verify_password(payload.password, user.get("password_hash", "")):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    return {"user": public_user(user), "token": create_token(user)}


def verify_token(token: str) -> Dict[str, Any]:
    """Resolve a bearer token to the stored user it was issued for."""
    user = load_token_user(token)
    return public_user(user)


def load_token_user(token: str) -> dict:
    claims = decode_token(token)
    user = find_by_id("user", claims.get("sub"))
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user
