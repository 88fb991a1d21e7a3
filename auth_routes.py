"""
Authentication endpoints: signup, login, current user, password reset
"""

import logging
from datetime import timedelta
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, EmailStr, Field, constr
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from auth import PRIVATE_USER_FIELDS, require_user
from database import USERS, Database, get_db, serialize_doc, utcnow
from mailer import Mailer, MailerError, get_mailer
from request_body import body_of
from schemas import User
from security import create_access_token, generate_otp, hash_otp, hash_password, verify_password

logger = logging.getLogger(__name__)

router = APIRouter()


class SignupRequest(BaseModel):
    username: constr(strip_whitespace=True, min_length=1, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6)


class LoginRequest(BaseModel):
    username: constr(strip_whitespace=True)
    password: str


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class VerifyOTPRequest(BaseModel):
    email: EmailStr
    otp: str


class ResetPasswordRequest(BaseModel):
    email: EmailStr
    otp: str
    newPassword: str = Field(..., min_length=6)


def _auth_response(request: Request, user: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "success": True,
        "token": create_access_token(str(user["_id"]), request.app.state.settings),
        "user": {
            "id": str(user["_id"]),
            "username": user["username"],
            "email": user["email"],
        },
    }


def _send_welcome(mailer: Mailer, user: Dict[str, Any]):
    try:
        mailer.send_welcome(user["email"], user["username"])
    except MailerError as e:
        logger.error(f"Welcome email not sent: {e}")


def _find_by_valid_otp(db: Database, email: str, otp: str):
    return db[USERS].find_one({
        "email": email,
        "resetOTP": hash_otp(otp),
        "resetOTPExpire": {"$gt": utcnow()},
    })


@router.post("/signup", status_code=status.HTTP_201_CREATED)
def signup(
    request: Request,
    body: SignupRequest = Depends(body_of(SignupRequest)),
    db: Database = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    if db[USERS].find_one({"username": body.username}):
        raise HTTPException(status_code=400, detail="Username already taken")
    if db[USERS].find_one({"email": body.email}):
        raise HTTPException(status_code=400, detail="Email already registered")

    user = User(
        username=body.username,
        email=body.email,
        password=hash_password(body.password),
        last_login=utcnow(),
    ).to_mongo()
    try:
        user["_id"] = db[USERS].insert_one(user).inserted_id
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="Username or email already taken")

    logger.info(f"User {user['username']} signed up")
    _send_welcome(mailer, user)
    return _auth_response(request, user)


@router.post("/login")
def login(
    request: Request,
    body: LoginRequest = Depends(body_of(LoginRequest)),
    db: Database = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    user = db[USERS].find_one({"username": body.username})
    if not user or not verify_password(body.password, user.get("password", "")):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    first_login = not user.get("lastLogin")
    db[USERS].update_one({"_id": user["_id"]}, {"$set": {"lastLogin": utcnow()}})
    if first_login:
        _send_welcome(mailer, user)

    return _auth_response(request, user)


@router.get("/me")
def get_me(user: Dict[str, Any] = Depends(require_user)):
    return {"success": True, "data": serialize_doc(user)}


@router.post("/forgotpassword")
def forgot_password(
    request: Request,
    body: ForgotPasswordRequest = Depends(body_of(ForgotPasswordRequest)),
    db: Database = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    user = db[USERS].find_one({"email": body.email})
    if not user:
        raise HTTPException(status_code=404, detail="No user found with this email address")

    otp = generate_otp()
    expires = utcnow() + timedelta(minutes=request.app.state.settings.OTP_EXPIRE_MINUTES)
    db[USERS].update_one(
        {"_id": user["_id"]},
        {"$set": {"resetOTP": hash_otp(otp), "resetOTPExpire": expires}},
    )

    try:
        mailer.send_otp(body.email, otp)
    except MailerError as e:
        logger.error(f"Reset code not sent: {e}")
        raise HTTPException(status_code=500, detail="Failed to send OTP email")

    return {"success": True, "message": "OTP has been sent to your email"}


@router.post("/verifyotp")
def verify_otp(
    body: VerifyOTPRequest = Depends(body_of(VerifyOTPRequest)),
    db: Database = Depends(get_db),
):
    if not _find_by_valid_otp(db, body.email, body.otp):
        raise HTTPException(status_code=400, detail="Invalid or expired OTP")
    return {"success": True, "message": "OTP verified successfully"}


@router.put("/resetpassword")
def reset_password(
    request: Request,
    body: ResetPasswordRequest = Depends(body_of(ResetPasswordRequest)),
    db: Database = Depends(get_db),
):
    user = _find_by_valid_otp(db, body.email, body.otp)
    if not user:
        raise HTTPException(status_code=400, detail="Invalid or expired OTP")

    user = db[USERS].find_one_and_update(
        {"_id": user["_id"]},
        {
            "$set": {"password": hash_password(body.newPassword)},
            "$unset": {"resetOTP": "", "resetOTPExpire": ""},
        },
        projection=PRIVATE_USER_FIELDS,
        return_document=ReturnDocument.AFTER,
    )
    logger.info(f"Password reset for {user['username']}")

    response = _auth_response(request, user)
    response["message"] = "Password has been reset successfully"
    return response
