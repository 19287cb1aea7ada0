"""Configuration-time selection of authentication capabilities."""
import pytest

from conftest import build_app
from core.models.authenticatable import (
    CLIENT_CAPABILITIES,
    SERVER_CAPABILITIES,
    Capability,
    resolve_capabilities,
)
from webapp.auth.utils import AUTH_CAPABILITIES_EXTENSION


class TestResolveCapabilities:

    def test_server_build_enables_everything(self):
        assert resolve_capabilities("server") == SERVER_CAPABILITIES
        assert len(SERVER_CAPABILITIES) == 6

    def test_client_build_enables_nothing(self):
        assert resolve_capabilities("client") == CLIENT_CAPABILITIES == frozenset()

    def test_target_is_case_insensitive(self):
        assert resolve_capabilities(" Server ") == SERVER_CAPABILITIES

    def test_explicit_names_narrow_the_set(self):
        enabled = resolve_capabilities("server", ["database_authenticatable", "Trackable"])
        assert enabled == {Capability.DATABASE_AUTHENTICATABLE, Capability.TRACKABLE}

    def test_explicit_names_cannot_widen_client_build(self):
        assert resolve_capabilities("client", ["registerable"]) == frozenset()

    def test_model_support_limits_the_set(self):
        enabled = resolve_capabilities("server", supported=[Capability.RECOVERABLE])
        assert enabled == {Capability.RECOVERABLE}

    def test_unknown_target_is_rejected(self):
        with pytest.raises(ValueError, match="AUTH_BUILD_TARGET"):
            resolve_capabilities("embedded")

    def test_unknown_capability_is_rejected(self):
        with pytest.raises(ValueError, match="confirmable"):
            resolve_capabilities("server", ["confirmable"])


class TestCapabilityGatedRoutes:

    def test_client_build_registers_no_auth_routes(self):
        app = build_app(AUTH_BUILD_TARGET="client")
        client = app.test_client()

        assert app.extensions[AUTH_CAPABILITIES_EXTENSION] == frozenset()
        assert client.get("/users/sign_in").status_code == 404
        assert client.get("/users/sign_up").status_code == 404

        response = client.get("/")
        assert response.status_code == 200
        html = response.data.decode("utf-8")
        assert "Hello, world!" in html
        assert "/users/sign_in" not in html

    def test_registration_disabled_keeps_sign_in(self):
        app = build_app(AUTH_CAPABILITIES=["database_authenticatable", "recoverable"])
        client = app.test_client()

        assert client.get("/users/sign_in").status_code == 200
        assert client.get("/users/password/new").status_code == 200
        assert client.get("/users/sign_up").status_code == 404
        assert 'name="remember_me"' not in client.get("/users/sign_in").data.decode("utf-8")

    def test_invalid_configuration_fails_app_creation(self):
        with pytest.raises(ValueError):
            build_app(AUTH_BUILD_TARGET="browser")

    def test_login_required_without_sign_in_route_answers_401(self):
        from core.models.user import User
        from webapp.extensions import db

        app = build_app(AUTH_CAPABILITIES=["registerable"])
        with app.app_context():
            user = User(email="solo@example.com")
            user.set_password("password123")
            db.session.add(user)
            db.session.commit()

        client = app.test_client()
        assert client.get("/users/edit").status_code == 401


class TestTrackableDisabled:

    def test_sign_in_without_trackable_leaves_counters(self):
        from core.models.user import User
        from webapp.extensions import db

        app = build_app(AUTH_CAPABILITIES=["database_authenticatable"])
        with app.app_context():
            user = User(email="quiet@example.com")
            user.set_password("password123")
            db.session.add(user)
            db.session.commit()

            client = app.test_client()
            response = client.post(
                "/users/sign_in",
                data={"email": "quiet@example.com", "password": "password123"},
            )
            assert response.status_code == 302

            db.session.refresh(user)
            assert user.sign_in_count == 0
            assert user.current_sign_in_at is None
