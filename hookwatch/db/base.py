"""Declarative base shared by all hookwatch models."""

from advanced_alchemy.base import UUIDBase


class Base(UUIDBase):
    """UUID primary key base. Tables are named explicitly on each model."""

    __abstract__ = True
