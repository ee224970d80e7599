from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from clayminds.db.database import Base


class LocalState(Base):
    __tablename__ = "local_state"

    key: Mapped[str] = mapped_column(
        String(128),
        primary_key=True,
    )

    # raw string; structured keys hold JSON
    value: Mapped[str] = mapped_column(
        Text,
        nullable=False)
