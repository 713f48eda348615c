from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base


class PetRole(str, Enum):
    OWNER = "owner"
    EDITOR = "editor"
    VIEWER = "viewer"


EDIT_ROLES = {PetRole.OWNER.value, PetRole.EDITOR.value}


class Pet(Base):
    __tablename__ = "pets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    species: Mapped[str | None] = mapped_column(String(50))
    breed: Mapped[str | None] = mapped_column(String(100))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    owners: Mapped[list["PetOwner"]] = relationship(
        "PetOwner", back_populates="pet", cascade="all, delete-orphan"
    )


class PetOwner(Base):
    """Sharing grant of a pet to a user; only accepted grants give access."""
    __tablename__ = "pet_owners"
    __table_args__ = (UniqueConstraint("pet_id", "user_id", name="uq_pet_owners_pet_user"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    pet_id: Mapped[int] = mapped_column(Integer, ForeignKey("pets.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=PetRole.VIEWER.value)  # owner, editor, viewer
    invited_by: Mapped[int | None] = mapped_column(Integer, ForeignKey("users.id"))
    invited_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Relationships
    pet: Mapped["Pet"] = relationship("Pet", back_populates="owners")
