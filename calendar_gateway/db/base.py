"""
Declarative base - every ORM model in the gateway inherits from Base.
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass
