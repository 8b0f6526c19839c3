import logging
from typing import Any, Dict, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, EmailStr, Field
from pymongo.errors import DuplicateKeyError

from database import db, now, serialize_doc
from schemas import User as UserSchema
from security import create_access_token, get_current_user, hash_password, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


# Auth models
class RegisterInput(BaseModel):
    first_name: str = Field(..., min_length=2, max_length=50)
    last_name: str = Field(..., min_length=2, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6)
    phone: Optional[str] = Field(None, pattern=r"^[0-9]{10}$")


class LoginInput(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class TokenResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    user: Dict[str, Any]


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=2, max_length=50)
    last_name: Optional[str] = Field(None, min_length=2, max_length=50)
    phone: Optional[str] = Field(None, pattern=r"^[0-9]{10}$")
    avatar: Optional[str] = None


class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=6)


@router.post("/register", response_model=TokenResponse, status_code=201)
def register(payload: RegisterInput):
    email = payload.email.lower()
    if db["user"].find_one({"email": email}):
        raise HTTPException(status_code=400, detail="User already exists with this email")
    user_model = UserSchema(
        first_name=payload.first_name.strip(),
        last_name=payload.last_name.strip(),
        email=email,
        password_hash=hash_password(payload.password),
        phone=payload.phone,
    )
    doc = {**user_model.model_dump(), "created_at": now(), "updated_at": now()}
    try:
        result = db["user"].insert_one(doc)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="User already exists with this email")
    user_id = str(result.inserted_id)
    logger.info("Registered user %s", email)
    token = create_access_token({"sub": user_id})
    user = serialize_doc(db["user"].find_one({"_id": result.inserted_id}))
    return TokenResponse(token=token, user=user)


@router.post("/login", response_model=TokenResponse)
def login(payload: LoginInput):
    user = db["user"].find_one({"email": payload.email.lower()})
    if not user or not verify_password(payload.password, user.get("password_hash", "")):
        raise HTTPException(status_code=400, detail="Invalid credentials")
    if not user.get("is_active", True):
        raise HTTPException(status_code=400, detail="Account is deactivated. Please contact support.")
    db["user"].update_one({"_id": user["_id"]}, {"$set": {"last_login": now()}})
    token = create_access_token({"sub": str(user["_id"])})
    user = serialize_doc(db["user"].find_one({"_id": user["_id"]}))
    return TokenResponse(token=token, user=user)


@router.get("/me")
def me(current_user: dict = Depends(get_current_user)):
    return current_user


@router.put("/profile")
def update_profile(data: ProfileUpdate, current_user: dict = Depends(get_current_user)):
    update_dict = data.model_dump(exclude_unset=True, exclude_none=True)
    if not update_dict:
        raise HTTPException(status_code=400, detail="No fields to update")
    update_dict["updated_at"] = now()
    user_id = ObjectId(current_user["id"])
    db["user"].update_one({"_id": user_id}, {"$set": update_dict})
    return serialize_doc(db["user"].find_one({"_id": user_id}))


@router.put("/password")
def change_password(data: PasswordChange, current_user: dict = Depends(get_current_user)):
    user_id = ObjectId(current_user["id"])
    user = db["user"].find_one({"_id": user_id})
    if not verify_password(data.current_password, user.get("password_hash", "")):
        raise HTTPException(status_code=400, detail="Current password is incorrect")
    db["user"].update_one(
        {"_id": user_id},
        {"$set": {"password_hash": hash_password(data.new_password), "updated_at": now()}},
    )
    logger.info("Password changed for %s", current_user.get("email"))
    return {"ok": True}
