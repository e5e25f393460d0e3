"""Support tickets: an append-only conversation between a customer and the admins."""

import logging
import secrets
import string
from typing import Any, Dict, List, Optional

from pymongo import ReturnDocument
from pymongo.database import Database

from database import create_document, get_documents, utcnow
from schemas import SupportTicket, TicketMessage

logger = logging.getLogger(__name__)

TICKET_ID_LENGTH = 7
OPEN = "Open"

_ALPHABET = string.ascii_uppercase + string.digits


def generate_ticket_id() -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(TICKET_ID_LENGTH))


def open_ticket(
    db: Database,
    name: str,
    email: str,
    subject: str,
    message: str,
    user_id: Optional[str] = None,
) -> Dict[str, Any]:
    now = utcnow()
    ticket = SupportTicket(
        ticket_id=generate_ticket_id(),
        user_email=email.strip().lower(),
        user_id=user_id,
        subject=subject.strip(),
        status=OPEN,
        messages=[TicketMessage(sender="user", name=name.strip(), message=message.strip(), timestamp=now)],
    )
    doc = ticket.model_dump()
    create_document(db, "support_tickets", doc)
    logger.info("Support ticket %s opened by %s", ticket.ticket_id, ticket.user_email)
    return doc


def find_ticket(db: Database, ticket_id: str, email: Optional[str] = None) -> Optional[Dict[str, Any]]:
    query = {"ticket_id": ticket_id.strip().upper()}
    if email is not None:
        query["user_email"] = email.strip().lower()
    return db["support_tickets"].find_one(query)


def add_message(
    db: Database,
    ticket_id: str,
    sender: str,
    name: str,
    message: str,
    admin_name: Optional[str] = None,
    reopen: bool = True,
) -> bool:
    """Append a message; customer messages put the ticket back to Open."""
    entry = TicketMessage(sender=sender, name=name, admin_name=admin_name, message=message.strip(), timestamp=utcnow())
    update_set = {"updated_at": entry.timestamp}
    if reopen:
        update_set["status"] = OPEN
    result = db["support_tickets"].update_one(
        {"ticket_id": ticket_id.strip().upper()},
        {"$push": {"messages": entry.model_dump()}, "$set": update_set},
    )
    return result.matched_count > 0


def set_status(db: Database, ticket_id: str, status: str) -> Optional[Dict[str, Any]]:
    return db["support_tickets"].find_one_and_update(
        {"ticket_id": ticket_id.strip().upper()},
        {"$set": {"status": status, "updated_at": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )


def inbox(db: Database) -> List[Dict[str, Any]]:
    return get_documents(db, "support_tickets", sort=[("updated_at", -1)])


def open_count(db: Database) -> int:
    return db["support_tickets"].count_documents({"status": OPEN})
