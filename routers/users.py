import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Form, Request
from pymongo.database import Database

import accounts
from captcha import TurnstileVerifier
from deps import client_ip, current_user, get_captcha, get_db, redirect
from errors import ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users")


@router.get("/register")
def register_page(error: Optional[str] = None, user: Optional[Dict[str, Any]] = Depends(current_user)):
    if user:
        return redirect("/account")
    return {"title": "Register", "error": error}


@router.post("/register")
def register(
    request: Request,
    first_name: str = Form(""),
    last_name: str = Form(""),
    email: str = Form(""),
    password: str = Form(""),
    confirm_password: str = Form(""),
    captcha_token: str = Form("", alias="cf-turnstile-response"),
    db: Database = Depends(get_db),
    captcha: TurnstileVerifier = Depends(get_captcha),
):
    if not captcha.verify(captcha_token, client_ip(request)):
        return redirect("/users/register", error="Bot verification failed. Please try again.")
    try:
        user = accounts.register(db, first_name, last_name, email, password, confirm_password)
    except ValidationError as exc:
        return redirect("/users/register", error=exc.message)
    request.session["user"] = accounts.session_user(user)
    return redirect("/account")


@router.get("/login")
def login_page(
    error: Optional[str] = None,
    message: Optional[str] = None,
    user: Optional[Dict[str, Any]] = Depends(current_user),
):
    if user:
        return redirect("/account")
    return {"title": "Login", "error": error, "message": message}


@router.post("/login")
def login(
    request: Request,
    email: str = Form(""),
    password: str = Form(""),
    db: Database = Depends(get_db),
):
    user = accounts.authenticate(db, email, password)
    if user is None:
        return redirect("/users/login", error="Invalid email or password.")
    request.session["user"] = accounts.session_user(user)
    logger.info("User %s logged in", user["user_id"])
    return redirect("/account")


@router.get("/logout")
def logout(request: Request):
    # The cart lives in the same session and goes with it
    request.session.clear()
    return redirect("/")
