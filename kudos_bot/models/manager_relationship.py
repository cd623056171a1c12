"""Direct manager of a user: a single edge, not an org tree."""

from sqlalchemy import Column, DateTime, Index, Text, func

from kudos_bot.database import Base


class ManagerRelationship(Base):
    __tablename__ = "manager_relationships"
    __table_args__ = (
        Index("idx_manager_user", "user_id"),
        Index("idx_manager_manager", "manager_id"),
    )

    user_id = Column(Text, primary_key=True)
    manager_id = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
