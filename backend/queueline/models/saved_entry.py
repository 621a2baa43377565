"""Saved queue entries - a client's quick re-lookup list."""

from sqlalchemy import Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from queueline.db.base import Base, TimestampMixin


class SavedEntry(Base, TimestampMixin):
    """A queue entry remembered for one client (browser), in the order saved."""

    __tablename__ = "saved_entries"
    __table_args__ = (
        UniqueConstraint("client_id", "entry_id", name="uq_saved_entries_client_entry"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    client_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    entry_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone: Mapped[str] = mapped_column(String(20), nullable=False)

    def __repr__(self):
        return f"<SavedEntry(client_id={self.client_id}, entry_id={self.entry_id})>"
