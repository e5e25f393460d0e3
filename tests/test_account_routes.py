"""Tests for registration, login, account settings and password reset routes."""

import accounts

REGISTER_FORM = {
    "first_name": "Sam",
    "last_name": "Smith",
    "email": "sam@example.com",
    "password": "kicks2024",
    "confirm_password": "kicks2024",
    "cf-turnstile-response": "token",
}


class TestRegistration:
    def test_register_logs_in(self, client, db):
        response = client.post("/users/register", data=REGISTER_FORM)
        assert response.headers["location"] == "/account"
        assert db["users"].count_documents({"email": "sam@example.com"}) == 1
        assert client.get("/account").headers["location"] == "/account/settings"

    def test_weak_password(self, client, db):
        response = client.post("/users/register", data=dict(REGISTER_FORM, password="short", confirm_password="short"))
        assert response.headers["location"].startswith("/users/register?error=")
        assert db["users"].count_documents({}) == 0

    def test_duplicate_email(self, client, customer):
        response = client.post("/users/register", data=dict(REGISTER_FORM, email="JANE@example.com"))
        assert "already+exists" in response.headers["location"]

    def test_failed_captcha(self, client, db):
        from deps import get_captcha
        from main import app

        class Rejecting:
            def verify(self, token, remote_ip=None):
                return False

        app.dependency_overrides[get_captcha] = lambda: Rejecting()
        response = client.post("/users/register", data=REGISTER_FORM)
        assert "Bot+verification+failed" in response.headers["location"]
        assert db["users"].count_documents({}) == 0


class TestLogin:
    def test_bad_credentials(self, client, customer):
        response = client.post("/users/login", data={"email": "jane@example.com", "password": "nope"})
        assert response.headers["location"] == "/users/login?error=Invalid+email+or+password."

    def test_logout_clears_session(self, customer_client):
        assert customer_client.get("/users/logout").headers["location"] == "/"
        assert customer_client.get("/account").headers["location"] == "/users/login"

    def test_account_pages_need_login(self, client):
        assert client.get("/account/settings").headers["location"] == "/users/login"
        response = client.post("/account/wishlist/toggle", data={"product_id": "x"}, headers={"accept": "application/json"})
        assert response.status_code == 401


class TestSettings:
    def test_identity_hides_password(self, customer_client):
        user = customer_client.get("/account/identity").json()["user"]
        assert user["email"] == "jane@example.com"
        assert "password_hash" not in user

    def test_update_profile_refreshes_session(self, customer_client):
        customer_client.post("/account/settings/update-profile", data={"first_name": "Janet", "last_name": "Doe"})
        assert customer_client.get("/account/settings").json()["user"]["first_name"] == "Janet"

    def test_update_password(self, customer_client, db):
        response = customer_client.post(
            "/account/settings/update-password",
            data={"current_password": "sneakers1", "new_password": "newkicks9", "confirm_password": "newkicks9"},
        )
        assert "message=" in response.headers["location"]
        assert accounts.authenticate(db, "jane@example.com", "newkicks9")

    def test_update_password_wrong_current(self, customer_client):
        response = customer_client.post(
            "/account/settings/update-password",
            data={"current_password": "bad", "new_password": "newkicks9", "confirm_password": "newkicks9"},
        )
        assert "Incorrect+current+password." in response.headers["location"]

    def test_addresses(self, customer_client):
        form = {"first_name": "Jane", "last_name": "Doe", "address": "1 Main St", "country": "US", "zip": "9000"}
        customer_client.post("/account/settings/add-address", data=dict(form, is_default="on"))
        addresses = customer_client.get("/account/addresses").json()["addresses"]
        assert addresses[0]["zip"] == "9000"
        assert addresses[0]["is_default"] is True

        address_id = addresses[0]["address_id"]
        customer_client.post(f"/account/settings/edit-address/{address_id}", data=dict(form, address="2 Elm St"))
        assert customer_client.get("/account/addresses").json()["addresses"][0]["address"] == "2 Elm St"

        customer_client.post(f"/account/settings/delete-address/{address_id}")
        assert customer_client.get("/account/addresses").json()["addresses"] == []

    def test_wishlist_toggle(self, customer_client, make_product):
        shoe = make_product()
        first = customer_client.post("/account/wishlist/toggle", data={"product_id": str(shoe["_id"])}).json()
        assert first == {"success": True, "new_status": "added"}
        assert [p["sku"] for p in customer_client.get("/account/wishlist").json()["products"]] == ["AA1"]
        second = customer_client.post("/account/wishlist/toggle", data={"product_id": str(shoe["_id"])}).json()
        assert second["new_status"] == "removed"

    def test_wishlist_toggle_needs_product(self, customer_client):
        response = customer_client.post("/account/wishlist/toggle", data={})
        assert response.status_code == 400


class TestReviews:
    def test_review_requires_delivered_purchase(self, customer_client, make_product):
        make_product()
        assert customer_client.get("/products/AA1/review").status_code == 403

    def test_review_after_delivery(self, customer_client, db, customer, make_product):
        shoe = make_product()
        db["orders"].insert_one({"user_id": customer["user_id"], "items": [{"sku": "AA1"}], "status": "Delivered"})

        response = customer_client.post("/products/AA1/review", data={"rating": "5", "comment": "Great"})

        assert response.headers["location"] == "/products/AA1"
        reviews = customer_client.get("/products/AA1").json()["reviews"]
        assert reviews[0]["rating"] == 5
        assert reviews[0]["author"]["first_name"] == "Jane"
        assert db["reviews"].find_one()["product_id"] == shoe["_id"]

    def test_rating_out_of_range(self, customer_client, db, customer, make_product):
        make_product()
        db["orders"].insert_one({"user_id": customer["user_id"], "items": [{"sku": "AA1"}], "status": "Delivered"})
        response = customer_client.post("/products/AA1/review", data={"rating": "9"})
        assert "error=" in response.headers["location"]
        assert db["reviews"].count_documents({}) == 0


class TestPasswordReset:
    def test_forgot_sends_link(self, client, customer, mailer):
        response = client.post("/password/forgot", data={"email": "jane@example.com"})
        assert response.headers["location"].startswith("/password/forgot?message=")
        assert len(mailer.sent) == 1
        assert "/password/reset/" in mailer.sent[0]["html"]

    def test_forgot_unknown_email_looks_the_same(self, client, customer, mailer):
        known = client.post("/password/forgot", data={"email": "jane@example.com"}).headers["location"]
        unknown = client.post("/password/forgot", data={"email": "ghost@example.com"}).headers["location"]
        assert known == unknown
        assert len(mailer.sent) == 1

    def test_reset_flow(self, client, db, customer):
        token = accounts.start_password_reset(db, "jane@example.com")["reset_token"]
        assert client.get(f"/password/reset/{token}").status_code == 200

        response = client.post(
            f"/password/reset/{token}", data={"password": "fresh1234", "confirm_password": "fresh1234"}
        )
        assert response.headers["location"].startswith("/users/login")
        assert accounts.authenticate(db, "jane@example.com", "fresh1234")

    def test_bad_token(self, client):
        assert client.get("/password/reset/nope").headers["location"].startswith("/password/forgot?error=")
