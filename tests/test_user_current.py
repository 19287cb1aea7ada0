"""Tests for User.current resolution."""
import pytest
from werkzeug.exceptions import NotFound

from core.models.authenticatable import AuthenticatedEntity
from core.models.user import User
from webapp.extensions import db


class TestUserCurrent:

    def test_no_identifier_returns_fresh_unsaved_user(self, app_context):
        user = User.current(None)

        assert isinstance(user, User)
        assert user.persisted is False
        assert user.id is None
        assert user.email is None
        assert user.sign_in_count == 0

    def test_empty_identifier_is_treated_as_absent(self, app_context):
        user = User.current("")
        assert user.persisted is False

    def test_fresh_user_is_not_cached_between_calls(self, app_context):
        first = User.current()
        first.email = "mutated@example.com"
        second = User.current()

        assert first is not second
        assert second.email is None
        assert second.persisted is False

    def test_fresh_user_is_not_added_to_session(self, app_context):
        User.current()
        assert list(db.session.new) == []
        assert db.session.query(User).count() == 0

    def test_existing_identifier_returns_persisted_record(self, app_context):
        user = User(email="a@x.com")
        user.set_password("password123")
        db.session.add(user)
        db.session.commit()

        resolved = User.current(user.id)

        assert resolved.id == user.id
        assert resolved.email == "a@x.com"
        assert resolved.persisted is True

    def test_string_identifier_from_session_is_accepted(self, app_context):
        user = User(id=42, email="a@x.com")
        db.session.add(user)
        db.session.commit()

        resolved = User.current("42")
        assert resolved.id == 42
        assert resolved.email == "a@x.com"

    def test_unknown_identifier_raises_not_found(self, app_context):
        with pytest.raises(NotFound):
            User.current(999)

    def test_non_numeric_identifier_raises_not_found(self, app_context):
        with pytest.raises(NotFound):
            User.current("not-a-number")

    @pytest.mark.parametrize("identifier", [42.9, True, "42.0", " 42", "\uff14\uff12"])
    def test_non_integral_identifier_raises_not_found(self, app_context, identifier):
        db.session.add(User(id=1, email="one@x.com"))
        db.session.add(User(id=42, email="a@x.com"))
        db.session.commit()

        with pytest.raises(NotFound):
            User.current(identifier)

    def test_deleted_record_is_no_longer_persisted(self, app_context):
        user = User(email="gone@example.com")
        db.session.add(user)
        db.session.commit()
        user_id = user.id

        db.session.delete(user)
        db.session.commit()

        assert user.persisted is False
        with pytest.raises(NotFound):
            User.current(user_id)


class TestUserCredentials:

    def test_password_is_hashed_and_checked(self, app_context):
        user = User(email="hash@example.com")
        user.set_password("s3cret-pass")

        assert user.encrypted_password != "s3cret-pass"
        assert user.check_password("s3cret-pass") is True
        assert user.check_password("wrong") is False
        assert user.check_password(None) is False

    def test_fresh_user_rejects_any_password(self, app_context):
        assert User.current().check_password("anything") is False

    def test_email_is_normalized_for_lookup(self, app_context):
        user = User(email="mixed@example.com")
        db.session.add(user)
        db.session.commit()

        assert User.find_by_email("  MIXED@Example.com ") is not None
        assert User.find_by_email("") is None
        assert User.find_by_email(None) is None

    def test_update_tracked_fields_shifts_previous_sign_in(self, app_context):
        user = User(email="track@example.com")
        user.update_tracked_fields("10.0.0.1")
        first_at = user.current_sign_in_at

        assert user.sign_in_count == 1
        assert user.current_sign_in_ip == "10.0.0.1"
        assert user.last_sign_in_ip == "10.0.0.1"

        user.update_tracked_fields("10.0.0.2")

        assert user.sign_in_count == 2
        assert user.last_sign_in_at == first_at
        assert user.last_sign_in_ip == "10.0.0.1"
        assert user.current_sign_in_ip == "10.0.0.2"

    def test_user_satisfies_authenticated_entity_protocol(self, app_context):
        assert isinstance(User.current(), AuthenticatedEntity)


class TestSessionIdentity:

    def test_get_id_carries_session_token(self, app_context):
        user = User(id=7, email="s@example.com")

        identifier, token = User.split_session_id(user.get_id())

        assert identifier == "7"
        assert user.session_token_matches(token)
        assert User.current().get_id() is None

    def test_password_change_rotates_token(self, app_context):
        user = User(email="s@example.com")
        user.set_password("first-pass")
        _, old_token = User.split_session_id(f"1:{user.session_token}")

        user.set_password("second-pass")

        assert not user.session_token_matches(old_token)
        assert not user.session_token_matches(None)

    def test_plain_identifier_has_no_token(self):
        assert User.split_session_id("42") == ("42", None)
        assert User.split_session_id(None) == (None, None)
