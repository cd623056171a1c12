"""Kudos sent from one user to another."""

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, Text, false, func

from kudos_bot.database import Base


class Kudos(Base):
    __tablename__ = "kudos"
    __table_args__ = (
        Index("idx_to_user", "to_user_id"),
        Index("idx_from_user", "from_user_id"),
        Index("idx_created_at", "created_at"),
        Index("idx_visibility", "visibility"),
        Index("idx_visibility_created_at", "visibility", "created_at"),
    )
    # created_at comes from the database; fetch it back on insert.
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    from_user_id = Column(Text, nullable=False)
    from_user_name = Column(Text, nullable=False)
    to_user_id = Column(Text, nullable=False)
    to_user_name = Column(Text, nullable=False)
    message = Column(Text, nullable=False)
    channel_id = Column(Text, nullable=True)
    channel_name = Column(Text, nullable=True)
    sent_dm = Column(Boolean, default=False, server_default=false(), nullable=False)
    sent_channel = Column(Boolean, default=False, server_default=false(), nullable=False)
    visibility = Column(String, default="public", server_default="public", nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
