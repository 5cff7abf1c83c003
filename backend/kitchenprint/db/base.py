"""
Declarative base shared by all models
"""
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def import_models() -> None:
    """Register every model on Base.metadata."""
    from kitchenprint.models import printer, station, print_job, product  # noqa: F401
