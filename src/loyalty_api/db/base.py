from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""


# Import models to ensure metadata registration for Alembic
try:  # pragma: no cover - import side effects only
    import loyalty_api.models  # noqa: F401
except ImportError:  # pragma: no cover - circular import during model bootstrap
    pass
