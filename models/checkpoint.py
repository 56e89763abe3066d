from datetime import date

from sqlalchemy import Date, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base


class ProcessingState(Base):
    """Named watermark: the last date up to which a background job has fully processed."""

    __tablename__ = "processing_states"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    key: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    value: Mapped[date] = mapped_column(Date, nullable=False)

    def __repr__(self):
        return f"<ProcessingState {self.key}={self.value}>"
