from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from hookwatch.db.base import Base


class ServerMetadata(Base):
    """Key/value rows for server-wide state such as the change counters."""

    __tablename__ = "server_metadata"

    key: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
