"""SQLAlchemy model for the generation event log."""

from sqlalchemy import ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from replygate.common.models import Base, TimestampMixin, generate_uuid


class GenerationEventModel(Base, TimestampMixin):
    """One AI reply produced for a user. Append-only."""

    __tablename__ = "ai_responses"
    __table_args__ = (
        Index("ix_ai_responses_user_created", "user_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id"), nullable=False, index=True
    )
    client_message: Mapped[str] = mapped_column(Text, nullable=False)
    ai_response: Mapped[str] = mapped_column(Text, nullable=False)
    query_type: Mapped[str] = mapped_column(String(50), nullable=False, default="general")
    tone: Mapped[str] = mapped_column(String(50), nullable=False, default="professional")
    confidence: Mapped[int] = mapped_column(Integer, nullable=False, default=80)  # 0-100
    generation_time: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # ms
