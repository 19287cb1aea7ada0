import os
import sys
from pathlib import Path

import pytest
from flask import g, has_app_context
from flask.testing import FlaskClient

os.environ.setdefault("TESTING", "true")

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


class SessionOnlyClient(FlaskClient):
    """リクエストごとに Flask-Login のユーザーキャッシュ (g._login_user) を破棄する

    fixture のアプリケーションコンテキスト内で送ったリクエストでも、
    ログイン状態をセッションと cookie だけから復元させる。
    """

    def open(self, *args, **kwargs):
        if has_app_context():
            g.pop("_login_user", None)
        return super().open(*args, **kwargs)


def build_app(**overrides):
    """TestConfig を元に、設定を上書きしたアプリを生成する"""
    from webapp import create_app
    from webapp.config import TestConfig

    ui_engine = overrides.pop("ui_engine", None)
    config = type("OverriddenTestConfig", (TestConfig,), overrides)
    app = create_app(config, ui_engine=ui_engine)
    app.test_client_class = SessionOnlyClient
    return app


@pytest.fixture
def app_context():
    """アプリケーションコンテキストを提供するfixture"""
    from webapp.extensions import db

    app = build_app()
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app_context):
    return app_context.test_client()


@pytest.fixture
def make_user(app_context):
    from core.models.user import User
    from webapp.extensions import db

    def _create_user(email="user@example.com", password="password123", **attrs):
        user = User(email=email, **attrs)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user

    return _create_user



def login(client, user):
    """Flask-Login と同じ形式の session id をセッションに書き込む"""
    with client.session_transaction() as session:
        session["_user_id"] = user.get_id()
        session["_fresh"] = True
