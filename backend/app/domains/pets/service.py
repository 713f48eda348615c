"""Pet-level access control."""
import logging

from sqlalchemy.orm import Session

from app.core.exceptions import Forbidden, NotFound
from app.domains.pets.models import EDIT_ROLES, Pet, PetOwner

logger = logging.getLogger(__name__)


class PetAccessService:
    """Resolves a user's role on a pet and enforces view/edit checks."""

    def __init__(self, db: Session):
        self.db = db

    def get_pet(self, pet_id: int) -> Pet | None:
        return self.db.query(Pet).filter(Pet.id == pet_id).first()

    def get_role(self, pet_id: int, user_id: int) -> str | None:
        """Return the accepted role of user on pet, or None."""
        grant = (
            self.db.query(PetOwner)
            .filter(
                PetOwner.pet_id == pet_id,
                PetOwner.user_id == user_id,
                PetOwner.accepted_at.isnot(None),
            )
            .first()
        )
        return grant.role if grant else None

    def require_view_access(self, pet_id: int, user_id: int) -> Pet:
        """
        Ensure user may read the pet.

        A missing pet and a pet without access both surface as NotFound so
        that pet ids cannot be discovered.
        """
        pet = self.get_pet(pet_id)
        if not pet or self.get_role(pet_id, user_id) is None:
            raise NotFound("Pet not found")
        return pet

    def require_edit_access(self, pet_id: int, user_id: int) -> Pet:
        """Ensure user is an owner or editor of the pet."""
        pet = self.get_pet(pet_id)
        if not pet:
            raise NotFound("Pet not found")

        role = self.get_role(pet_id, user_id)
        if role not in EDIT_ROLES:
            logger.info(f"User {user_id} denied edit access to pet {pet_id} (role={role})")
            raise Forbidden("Not authorized to edit this pet")
        return pet
