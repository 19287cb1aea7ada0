"""ORM models shared across applications."""

# モデルの循環インポートを避けるため、ここで一括インポート
from .authenticatable import AuthenticatedEntity, Capability
from .log import Log
from .user import User

__all__ = [
    'AuthenticatedEntity',
    'Capability',
    'Log',
    'User',
]
