from .base import Base  # noqa: F401
