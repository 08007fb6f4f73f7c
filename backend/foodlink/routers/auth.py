from __future__ import annotations

from datetime import datetime, timezone

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import APIRouter, Depends, Form, HTTPException, Security, status
from fastapi.security import OAuth2PasswordBearer
from loguru import logger
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo.errors import PyMongoError

from ..database import db
from ..models.user import Actor, AuthResponse, Role, UserCreate, UserPublic
from ..utils.logging import log_db_error
from ..utils.security import create_access_token, decode_token, hash_password, verify_password

router = APIRouter(prefix="/auth", tags=["auth"])
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


async def get_user_collection() -> AsyncIOMotorCollection:
    return db.get_collection("users")


def _public(user: dict) -> UserPublic:
    user["_id"] = str(user["_id"])
    return UserPublic(**user)


@router.post("/register", response_model=UserPublic, status_code=status.HTTP_201_CREATED)
async def register_user(payload: UserCreate, users: AsyncIOMotorCollection = Depends(get_user_collection)) -> UserPublic:
    try:
        existing = await users.find_one({"email": payload.email})
        if existing:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered")
        doc = {
            "email": payload.email,
            "name": payload.name,
            "password": hash_password(payload.password),
            "role": payload.role.value,
            "address": payload.address,
            "phone_number": payload.phone_number,
            "created_at": datetime.now(timezone.utc),
        }
        result = await users.insert_one(doc)
        stored = await users.find_one({"_id": result.inserted_id})
    except PyMongoError as exc:  # pragma: no cover - requires external service
        log_db_error("register_user", exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Registration failed. Try again when database is available.",
        ) from exc
    logger.info("Registered {} account {}", payload.role.value, stored["_id"])
    return _public(stored)


class LoginForm:
    def __init__(
        self,
        username: str = Form(...),
        password: str = Form(...),
        role: Role = Form(...),
    ) -> None:
        self.username = username
        self.password = password
        self.role = role


@router.post("/login", response_model=AuthResponse)
async def login_user(form_data: LoginForm = Depends(), users: AsyncIOMotorCollection = Depends(get_user_collection)) -> AuthResponse:
    try:
        user = await users.find_one({"email": form_data.username})
    except PyMongoError as exc:  # pragma: no cover
        log_db_error("login_user", exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Login unavailable. Try again shortly.",
        ) from exc
    if not user or not verify_password(form_data.password, user.get("password", "")):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Incorrect email or password")
    if user.get("role") != form_data.role.value:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Role mismatch for this account")
    public_user = _public(user)
    token = create_access_token(public_user.id, public_user.role.value)
    return AuthResponse(access_token=token, user=public_user, message="Welcome back")


async def get_current_user(
    token: str | None = Security(oauth2_scheme),
    users: AsyncIOMotorCollection = Depends(get_user_collection),
) -> UserPublic:
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing authorization token")
    try:
        payload = decode_token(token)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload")
    try:
        object_id = ObjectId(user_id)
    except InvalidId as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token subject") from exc
    try:
        user = await users.find_one({"_id": object_id})
    except PyMongoError as exc:  # pragma: no cover
        log_db_error("get_current_user", exc)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Authentication unavailable") from exc
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return _public(user)


async def get_actor(user: UserPublic = Depends(get_current_user)) -> Actor:
    return user.as_actor()
