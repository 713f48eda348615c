"""Tests for pet-level view/edit access checks."""
import pytest

from app.core.exceptions import Forbidden, NotFound
from app.domains.pets.service import PetAccessService

from tests.conftest import EDITOR_ID, INVITED_ID, OTHER_PET_ID, OUTSIDER_ID, OWNER_ID, PET_ID, VIEWER_ID


@pytest.fixture
def access(db_session):
    return PetAccessService(db_session)


class TestPetAccessService:

    @pytest.mark.parametrize(
        "user_id,expected",
        [
            (OWNER_ID, "owner"),
            (EDITOR_ID, "editor"),
            (VIEWER_ID, "viewer"),
            (OUTSIDER_ID, None),
            (INVITED_ID, None),
        ],
    )
    def test_get_role(self, access, user_id, expected):
        assert access.get_role(PET_ID, user_id) == expected

    @pytest.mark.parametrize("user_id", [OWNER_ID, EDITOR_ID, VIEWER_ID])
    def test_shared_users_can_view(self, access, user_id):
        assert access.require_view_access(PET_ID, user_id).name == "Biscuit"

    @pytest.mark.parametrize("user_id", [OUTSIDER_ID, INVITED_ID])
    def test_others_cannot_see_the_pet(self, access, user_id):
        with pytest.raises(NotFound):
            access.require_view_access(PET_ID, user_id)

    @pytest.mark.parametrize("user_id", [OWNER_ID, EDITOR_ID])
    def test_owner_and_editor_can_edit(self, access, user_id):
        assert access.require_edit_access(PET_ID, user_id).id == PET_ID

    @pytest.mark.parametrize("user_id", [VIEWER_ID, INVITED_ID, OUTSIDER_ID])
    def test_others_cannot_edit(self, access, user_id):
        with pytest.raises(Forbidden):
            access.require_edit_access(PET_ID, user_id)

    def test_missing_pet(self, access):
        with pytest.raises(NotFound):
            access.require_edit_access(9999, OWNER_ID)
        with pytest.raises(NotFound):
            access.require_view_access(9999, OWNER_ID)

    def test_access_is_per_pet(self, access):
        assert access.get_role(OTHER_PET_ID, OWNER_ID) is None
        assert access.get_role(OTHER_PET_ID, OUTSIDER_ID) == "owner"
