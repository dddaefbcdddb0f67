from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Declarative base for the tenant directory database."""


class StoreBase(DeclarativeBase):
    """Declarative base for tables living in each tenant's own store.

    Kept on separate metadata so directory migrations never touch tenant
    stores and vice versa.
    """
