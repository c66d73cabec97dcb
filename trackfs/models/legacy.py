from sqlalchemy import Boolean, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from trackfs.database import Base
from trackfs.models.node import JsonColumn


class LegacyFolder(Base):
    __tablename__ = "folders"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    path: Mapped[str] = mapped_column(Text, nullable=False)
    parent: Mapped[str | None] = mapped_column(Text, nullable=True, index=True)
    created: Mapped[str] = mapped_column(String(40), nullable=False)


class LegacyTrack(Base):
    __tablename__ = "tracks"
    __table_args__ = (UniqueConstraint("user_id", "name", "folder", name="unique_track_name_per_folder"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str] = mapped_column(Text, default="", nullable=False)
    created: Mapped[str] = mapped_column(String(40), nullable=False)
    modified: Mapped[str] = mapped_column(String(40), nullable=False)
    folder: Mapped[str | None] = mapped_column(Text, nullable=True, index=True)
    is_multitrack: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    steps: Mapped[list[dict] | None] = mapped_column(JsonColumn, default=None, nullable=True)
    active_step: Mapped[int | None] = mapped_column(Integer, default=0, nullable=True)
