from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Form
from pymongo.database import Database

import accounts
import notifications
from config import get_settings
from deps import get_db, get_mailer, redirect
from errors import ValidationError
from notifications import Mailer

router = APIRouter(prefix="/password")

RESET_SENT_MESSAGE = "If an account with that email exists, a password reset link has been sent."


@router.get("/forgot")
def forgot_page(message: Optional[str] = None, error: Optional[str] = None):
    return {"title": "Forgot Password", "message": message, "error": error}


@router.post("/forgot")
def forgot(
    background_tasks: BackgroundTasks,
    email: str = Form(""),
    db: Database = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    user = accounts.start_password_reset(db, email)
    # Same answer either way so the form can't be used to probe for accounts
    if user is not None:
        reset_url = f"{get_settings().base_url.rstrip('/')}/password/reset/{user['reset_token']}"
        subject, html = notifications.password_reset_email(reset_url)
        background_tasks.add_task(notifications.dispatch, mailer, user["email"], subject, html)
    return redirect("/password/forgot", message=RESET_SENT_MESSAGE)


@router.get("/reset/{token}")
def reset_page(token: str, error: Optional[str] = None, db: Database = Depends(get_db)):
    if accounts.find_by_reset_token(db, token) is None:
        return redirect("/password/forgot", error="Password reset link is invalid or has expired.")
    return {"title": "Reset Password", "token": token, "error": error}


@router.post("/reset/{token}")
def reset(
    token: str,
    password: str = Form(""),
    confirm_password: str = Form(""),
    db: Database = Depends(get_db),
):
    if accounts.find_by_reset_token(db, token) is None:
        return redirect("/password/forgot", error="Password reset link is invalid or has expired.")
    try:
        accounts.reset_password(db, token, password, confirm_password)
    except ValidationError as exc:
        return redirect(f"/password/reset/{token}", error=exc.message)
    return redirect("/users/login", message="Your password has been reset. Please log in.")
