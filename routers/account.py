from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import JSONResponse
from pymongo.database import Database

import accounts
import orders
import wishlist
from database import ensure_object_id, to_str_id
from deps import get_db, redirect, require_user
from errors import ValidationError

router = APIRouter(prefix="/account", dependencies=[Depends(require_user)])

PUBLIC_USER_FIELDS = {"password_hash": 0, "reset_token": 0, "reset_expiry": 0}


@router.get("")
def account_home(user: Dict[str, Any] = Depends(require_user)):
    if user.get("role") == accounts.ROLE_ADMIN:
        return redirect("/account/admin/dashboard")
    return redirect("/account/settings")


@router.get("/settings")
def settings_menu(user: Dict[str, Any] = Depends(require_user)):
    return {"title": "Settings", "user": user}


@router.get("/identity")
def identity(
    message: Optional[str] = None,
    error: Optional[str] = None,
    db: Database = Depends(get_db),
    user: Dict[str, Any] = Depends(require_user),
):
    doc = db["users"].find_one({"user_id": user["user_id"]}, PUBLIC_USER_FIELDS)
    return {"title": "Identity", "user": to_str_id(doc), "message": message, "error": error}


@router.get("/security")
def security(message: Optional[str] = None, error: Optional[str] = None):
    return {"title": "Security", "message": message, "error": error}


@router.get("/addresses")
def addresses(
    message: Optional[str] = None,
    error: Optional[str] = None,
    db: Database = Depends(get_db),
    user: Dict[str, Any] = Depends(require_user),
):
    doc = db["users"].find_one({"user_id": user["user_id"]}, {"addresses": 1})
    return {
        "title": "Addresses",
        "addresses": (doc or {}).get("addresses") or [],
        "message": message,
        "error": error,
    }


@router.post("/wishlist/toggle")
def toggle_wishlist(
    product_id: str = Form(""),
    db: Database = Depends(get_db),
    user: Dict[str, Any] = Depends(require_user),
):
    if not product_id:
        return JSONResponse({"success": False, "message": "Product ID is required."}, status_code=400)
    status = wishlist.toggle(db, user["user_id"], ensure_object_id(product_id, "Product"))
    return {"success": True, "new_status": status}


@router.get("/wishlist")
def wishlist_page(db: Database = Depends(get_db), user: Dict[str, Any] = Depends(require_user)):
    return {
        "title": "My Wishlist",
        "products": to_str_id(wishlist.products_for(db, user["user_id"])),
        "wishlist": to_str_id(wishlist.ids_for(db, user["user_id"])),
    }


@router.get("/orders")
def order_history(db: Database = Depends(get_db), user: Dict[str, Any] = Depends(require_user)):
    return {"title": "Order History", "orders": to_str_id(orders.orders_for_user(db, user["user_id"]))}


@router.post("/settings/update-profile")
def update_profile(
    request: Request,
    first_name: str = Form(""),
    last_name: str = Form(""),
    db: Database = Depends(get_db),
    user: Dict[str, Any] = Depends(require_user),
):
    try:
        accounts.update_profile(db, user["user_id"], first_name, last_name)
    except ValidationError as exc:
        return redirect("/account/identity", error=exc.message)
    request.session["user"] = dict(user, first_name=first_name.strip(), last_name=last_name.strip())
    return redirect("/account/identity", message="Profile updated successfully!")


@router.post("/settings/update-password")
def update_password(
    current_password: str = Form(""),
    new_password: str = Form(""),
    confirm_password: str = Form(""),
    db: Database = Depends(get_db),
    user: Dict[str, Any] = Depends(require_user),
):
    try:
        accounts.change_password(db, user["user_id"], current_password, new_password, confirm_password)
    except ValidationError as exc:
        return redirect("/account/security", error=exc.message)
    return redirect("/account/security", message="Password updated successfully!")


def _address_fields(first_name, last_name, address, country, state, zip_code, phone, is_default) -> Dict[str, Any]:
    return {
        "first_name": first_name,
        "last_name": last_name,
        "address": address,
        "country": country,
        "state": state,
        "zip": zip_code,
        "phone": phone,
        "is_default": is_default == "on",
    }


@router.post("/settings/add-address")
def add_address(
    first_name: str = Form(""),
    last_name: str = Form(""),
    address: str = Form(""),
    country: str = Form(""),
    state: str = Form(""),
    zip_code: str = Form("", alias="zip"),
    phone: str = Form(""),
    is_default: str = Form(""),
    db: Database = Depends(get_db),
    user: Dict[str, Any] = Depends(require_user),
):
    fields = _address_fields(first_name, last_name, address, country, state, zip_code, phone, is_default)
    try:
        accounts.add_address(db, user["user_id"], fields)
    except ValidationError as exc:
        return redirect("/account/addresses", error=exc.message)
    return redirect("/account/addresses", message="Address added successfully!")


@router.post("/settings/edit-address/{address_id}")
def edit_address(
    address_id: str,
    first_name: str = Form(""),
    last_name: str = Form(""),
    address: str = Form(""),
    country: str = Form(""),
    state: str = Form(""),
    zip_code: str = Form("", alias="zip"),
    phone: str = Form(""),
    is_default: str = Form(""),
    db: Database = Depends(get_db),
    user: Dict[str, Any] = Depends(require_user),
):
    fields = _address_fields(first_name, last_name, address, country, state, zip_code, phone, is_default)
    try:
        accounts.edit_address(db, user["user_id"], address_id, fields)
    except ValidationError as exc:
        return redirect("/account/addresses", error=exc.message)
    return redirect("/account/addresses", message="Address updated successfully!")


@router.post("/settings/delete-address/{address_id}")
def delete_address(
    address_id: str,
    db: Database = Depends(get_db),
    user: Dict[str, Any] = Depends(require_user),
):
    accounts.delete_address(db, user["user_id"], address_id)
    return redirect("/account/addresses", message="Address removed successfully!")
