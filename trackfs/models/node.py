from sqlalchemy import JSON, Boolean, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from trackfs.database import Base

JsonColumn = JSON().with_variant(JSONB(), "postgresql")


class Node(Base):
    __tablename__ = "file_system_nodes"
    __table_args__ = (Index("ix_file_system_nodes_user_parent", "user_id", "parent_id"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    parent_id: Mapped[str | None] = mapped_column(
        ForeignKey("file_system_nodes.id", ondelete="CASCADE"), nullable=True, index=True
    )
    created: Mapped[str] = mapped_column(String(40), nullable=False)
    modified: Mapped[str] = mapped_column(String(40), nullable=False)

    # Track-only columns, NULL/default for folders
    code: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_multitrack: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    steps: Mapped[list[dict] | None] = mapped_column(JsonColumn, default=None, nullable=True)
    active_step: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
