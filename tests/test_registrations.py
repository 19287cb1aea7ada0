"""Sign up, account edit and account cancellation."""
import pytest

from conftest import login
from core.models.user import User
from webapp.auth import PENDING_REGISTRATION_SESSION_KEY
from webapp.extensions import db


def _sign_up(client, email="new@example.com", password="password123", confirmation=None):
    data = {"email": email, "password": password}
    data["password_confirmation"] = password if confirmation is None else confirmation
    return client.post("/users", data=data, follow_redirects=False)


class TestSignUp:

    def test_sign_up_creates_and_signs_in_user(self, client):
        response = _sign_up(client, email=" New@Example.com ")

        assert response.status_code == 302
        user = User.find_by_email("new@example.com")
        assert user is not None
        assert user.email == "new@example.com"
        assert user.check_password("password123")
        assert user.sign_in_count == 1
        with client.session_transaction() as session:
            assert session["_user_id"] == user.get_id()
            assert PENDING_REGISTRATION_SESSION_KEY not in session

    @pytest.mark.parametrize(
        ("email", "password", "confirmation", "message"),
        [
            ("", "password123", None, "Email can&#39;t be blank"),
            ("not-an-email", "password123", None, "Email is invalid"),
            ("new@example.com", "", None, "Password can&#39;t be blank"),
            ("new@example.com", "short", None, "Password is too short (minimum is 6 characters)"),
            ("new@example.com", "x" * 129, None, "Password is too long (maximum is 128 characters)"),
            ("new@example.com", "password123", "different", "Password confirmation doesn&#39;t match Password"),
        ],
    )
    def test_invalid_sign_up_is_rejected(self, client, email, password, confirmation, message):
        response = _sign_up(client, email=email, password=password, confirmation=confirmation)

        assert response.status_code == 200
        assert message in response.data.decode("utf-8")
        assert db.session.query(User).count() == 0

    def test_duplicate_email_is_rejected(self, client, make_user):
        make_user(email="taken@example.com")

        response = _sign_up(client, email="TAKEN@example.com")

        assert "Email has already been taken" in response.data.decode("utf-8")
        assert db.session.query(User).count() == 1

    def test_failed_sign_up_keeps_pending_email_until_cancel(self, client):
        _sign_up(client, email="pending@example.com", password="short")

        with client.session_transaction() as session:
            assert session[PENDING_REGISTRATION_SESSION_KEY] == {"email": "pending@example.com"}

        form = client.get("/users/sign_up").data.decode("utf-8")
        assert 'value="pending@example.com"' in form

        response = client.get("/users/cancel")

        assert response.status_code == 302
        assert response.headers["Location"].endswith("/users/sign_up")
        with client.session_transaction() as session:
            assert PENDING_REGISTRATION_SESSION_KEY not in session


class TestEditAccount:

    def test_edit_form_shows_current_email(self, client, make_user):
        user = make_user()
        login(client, user)

        response = client.get("/users/edit")

        assert response.status_code == 200
        assert 'value="user@example.com"' in response.data.decode("utf-8")

    def test_update_requires_current_password(self, client, make_user):
        user = make_user()
        login(client, user)

        response = client.patch("/users", data={"email": "changed@example.com", "current_password": "wrong"})

        assert "Current password is invalid" in response.data.decode("utf-8")
        db.session.refresh(user)
        assert user.email == "user@example.com"

    def test_update_email_and_password(self, client, make_user):
        user = make_user()
        login(client, user)

        response = client.post(
            "/users?_method=PATCH",
            data={
                "email": "changed@example.com",
                "password": "new-password",
                "password_confirmation": "new-password",
                "current_password": "password123",
            },
        )

        assert response.status_code == 302
        db.session.refresh(user)
        assert user.email == "changed@example.com"
        assert user.check_password("new-password")

        # パスワード変更後も同じセッションでサインイン状態が続く
        html = client.get("/").data.decode("utf-8")
        assert "Signed in as changed@example.com." in html

    def test_update_with_blank_password_keeps_old_one(self, client, make_user):
        user = make_user()
        login(client, user)

        client.put(
            "/users",
            data={"email": "user@example.com", "password": "", "current_password": "password123"},
        )

        db.session.refresh(user)
        assert user.check_password("password123")

    def test_update_to_taken_email_is_rejected(self, client, make_user):
        make_user(email="other@example.com")
        user = make_user()
        login(client, user)

        response = client.patch(
            "/users",
            data={"email": "other@example.com", "current_password": "password123"},
        )

        assert "Email has already been taken" in response.data.decode("utf-8")


class TestCancelAccount:

    def test_destroy_deletes_user_and_signs_out(self, client, make_user):
        user = make_user()
        user_id = user.id
        login(client, user)

        response = client.post("/users?_method=DELETE")

        assert response.status_code == 302
        assert db.session.query(User).filter_by(id=user_id).first() is None
        with client.session_transaction() as session:
            assert "_user_id" not in session

    def test_destroy_requires_login(self, client):
        response = client.delete("/users")
        assert response.status_code == 302
        assert "/users/sign_in" in response.headers["Location"]
