"""Tests for the customer support routes."""

import cart as carts
import orders
import tickets
from schemas import Cart, Customer, ShippingAddress

CONTACT_FORM = {"name": "Bo", "email": "Bo@Example.com", "subject": "Sizing", "message": "Do these run small?"}


def open_via_form(client):
    response = client.post("/support/contact", data=CONTACT_FORM)
    assert response.status_code == 200
    return response.json()


class TestContact:
    def test_opens_ticket_and_alerts_inbox(self, client, db, mailer):
        data = open_via_form(client)

        assert len(data["ticket_id"]) == 7
        assert data["email"] == "bo@example.com"
        ticket = db["support_tickets"].find_one()
        assert ticket["status"] == "Open"
        assert ticket["messages"][0]["message"] == "Do these run small?"
        assert mailer.sent[0]["to"] == "admin@sneakslab.shop"
        assert data["ticket_id"] in mailer.sent[0]["subject"]

    def test_missing_fields(self, client, db):
        response = client.post("/support/contact", data=dict(CONTACT_FORM, message=" "))
        assert response.headers["location"].startswith("/support/contact?error=")
        assert db["support_tickets"].count_documents({}) == 0


class TestTickets:
    def test_find_redirects_to_ticket(self, client):
        data = open_via_form(client)
        response = client.post("/support/tickets/find", data={"ticket_id": data["ticket_id"].lower(), "email": "bo@example.com"})
        assert response.headers["location"] == f"/support/tickets/{data['ticket_id']}?email=bo%40example.com"

    def test_view_needs_matching_email(self, client):
        data = open_via_form(client)
        assert client.get(f"/support/tickets/{data['ticket_id']}", params={"email": "BO@example.com"}).status_code == 200
        assert client.get(f"/support/tickets/{data['ticket_id']}", params={"email": "eve@example.com"}).status_code == 404

    def test_customer_reply_reopens(self, client, db):
        data = open_via_form(client)
        tickets.set_status(db, data["ticket_id"], "Closed")

        response = client.post(
            f"/support/tickets/{data['ticket_id']}/reply",
            data={"message": "Any update?", "user_email": "bo@example.com"},
        )

        assert response.status_code == 303
        ticket = tickets.find_ticket(db, data["ticket_id"])
        assert ticket["status"] == "Open"
        assert [m["message"] for m in ticket["messages"]] == ["Do these run small?", "Any update?"]
        assert ticket["messages"][1]["sender"] == "user"

    def test_reply_to_unknown_ticket(self, client):
        response = client.post("/support/tickets/NOPE123/reply", data={"message": "hi", "user_email": "bo@example.com"})
        assert response.status_code == 404


class TestOrderStatusLookup:
    def test_found(self, client, db, converter, make_product):
        placed = orders.place_order(
            db,
            carts.add_item(Cart(), make_product(), "9"),
            Customer(first_name="Bo", last_name="B", email="bo@example.com"),
            ShippingAddress(address="1 Main St", country="US"),
            currency="USD",
            converter=converter,
        )
        data = client.post(
            "/support/order-status", data={"order_id": "#" + placed.order_id[-7:].upper(), "email": "BO@example.com"}
        ).json()
        assert data["order"]["id"] == placed.order_id
        assert data["order"]["converted_total"] == 105

    def test_not_found(self, client):
        data = client.post("/support/order-status", data={"order_id": "abc123", "email": "bo@example.com"}).json()
        assert "error" in data

    def test_static_pages(self, client):
        assert client.get("/support").status_code == 200
        assert client.get("/support/shipping").json()["free_shipping_threshold"] == 150
        assert client.get("/support/returns").status_code == 200
