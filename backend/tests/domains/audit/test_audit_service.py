"""Tests for the audit logger and pet-scoped audit queries."""
from datetime import date
from unittest.mock import MagicMock

import pytest

from app.domains.audit.models import AuditLog
from app.domains.audit.service import AuditLogger, AuditLogReader, get_request_metadata
from app.domains.health_records.models import PetVaccination

from tests.conftest import OTHER_PET_ID, OWNER_ID, PET_ID


@pytest.fixture
def audit(db_session):
    return AuditLogger(db_session)


@pytest.fixture
def reader(db_session):
    return AuditLogReader(db_session)


def add_vaccination(db_session, pet_id=PET_ID, name="Rabies") -> PetVaccination:
    record = PetVaccination(pet_id=pet_id, name=name, administered_date=date(2024, 1, 15))
    db_session.add(record)
    db_session.flush()
    return record


class TestAuditLogger:

    def test_log_create_serializes_values(self, audit, db_session):
        entry = audit.log_create(
            "pet_vaccinations",
            10,
            {"name": "Rabies", "administered_date": date(2024, 1, 15)},
            changed_by=OWNER_ID,
            pet_id=PET_ID,
            source="pdf_import",
            source_upload_id=3,
        )

        assert entry.id is not None
        assert entry.action == "create"
        assert entry.source == "pdf_import"
        assert entry.new_values == {"name": "Rabies", "administered_date": "2024-01-15"}
        assert entry.changed_fields == ["name", "administered_date"]
        assert entry.old_values is None

    def test_log_create_does_not_commit(self, audit, db_session):
        audit.log_create("pet_vaccinations", 10, {"name": "Rabies"}, changed_by=OWNER_ID)
        db_session.rollback()

        assert db_session.query(AuditLog).count() == 0

    def test_log_update_records_only_changes(self, audit):
        entry = audit.log_update(
            "pets",
            PET_ID,
            {"name": "Biscuit", "breed": "Beagle"},
            {"name": "Biscuit", "breed": "Basset"},
            changed_by=OWNER_ID,
        )

        assert entry.action == "update"
        assert entry.changed_fields == ["breed"]
        assert entry.old_values == {"breed": "Beagle"}
        assert entry.new_values == {"breed": "Basset"}
        assert entry.source == "manual"

    def test_log_update_without_changes_writes_nothing(self, audit, db_session):
        assert audit.log_update("pets", PET_ID, {"name": "Biscuit"}, {"name": "Biscuit"}, changed_by=OWNER_ID) is None
        assert db_session.query(AuditLog).count() == 0

    def test_log_delete(self, audit):
        entry = audit.log_delete("pet_allergies", 5, {"allergen": "Beef"}, changed_by=None, pet_id=PET_ID)

        assert entry.action == "delete"
        assert entry.old_values == {"allergen": "Beef"}
        assert entry.new_values is None
        assert entry.changed_by is None


class TestAuditLogReader:
    """Tests for pet-scoped history queries."""

    def test_pet_history_includes_child_records(self, audit, reader, db_session):
        mine = add_vaccination(db_session)
        theirs = add_vaccination(db_session, pet_id=OTHER_PET_ID)
        # Entry without pet_id is still found through the record's pet
        audit.log_create("pet_vaccinations", mine.id, {"name": "Rabies"}, changed_by=OWNER_ID)
        audit.log_create("pet_vaccinations", theirs.id, {"name": "Rabies"}, changed_by=OWNER_ID)
        audit.log_update("pets", PET_ID, {"name": "Bis"}, {"name": "Biscuit"}, changed_by=OWNER_ID)
        db_session.commit()

        rows, total = reader.list_for_pet(PET_ID)

        assert total == 2
        assert {(entry.entity_type, entry.entity_id) for entry, _, _ in rows} == {
            ("pet_vaccinations", mine.id),
            ("pets", PET_ID),
        }

    def test_deleted_records_stay_visible_through_pet_id(self, audit, reader, db_session):
        audit.log_delete("pet_vaccinations", 999, {"name": "Rabies"}, changed_by=OWNER_ID, pet_id=PET_ID)
        db_session.commit()

        rows, total = reader.list_for_pet(PET_ID)

        assert total == 1
        assert rows[0][0].action == "delete"

    def test_newest_first_with_user_details(self, audit, reader, db_session):
        first = audit.log_create("pets", PET_ID, {"name": "Biscuit"}, changed_by=OWNER_ID)
        second = audit.log_update("pets", PET_ID, {"name": "Biscuit"}, {"name": "Biscuit II"}, changed_by=OWNER_ID)
        db_session.commit()

        rows, _ = reader.list_for_pet(PET_ID)

        assert [entry.id for entry, _, _ in rows] == [second.id, first.id]
        assert rows[0][1] == "Olivia Owner"
        assert rows[0][2] == "owner@example.com"

    def test_filters_and_pagination(self, audit, reader, db_session):
        for i in range(5):
            audit.log_create(
                "pet_vaccinations",
                100 + i,
                {"name": f"Shot {i}"},
                changed_by=OWNER_ID,
                pet_id=PET_ID,
                source="image_import",
                source_upload_id=1 if i < 3 else 2,
            )
        audit.log_delete("pet_allergies", 7, {"allergen": "Beef"}, changed_by=OWNER_ID, pet_id=PET_ID)
        db_session.commit()

        rows, total = reader.list_for_pet(PET_ID, limit=2, offset=0)
        assert total == 6
        assert len(rows) == 2

        _, total = reader.list_for_pet(PET_ID, entity_type="pet_allergies")
        assert total == 1
        _, total = reader.list_for_pet(PET_ID, action="create")
        assert total == 5
        _, total = reader.list_for_pet(PET_ID, source_upload_id=1)
        assert total == 3

    def test_record_and_upload_histories(self, audit, reader, db_session):
        record = add_vaccination(db_session)
        audit.log_create(
            "pet_vaccinations", record.id, {"name": "Rabies"}, changed_by=OWNER_ID,
            pet_id=PET_ID, source="pdf_import", source_upload_id=11,
        )
        audit.log_create("pets", PET_ID, {"name": "Biscuit"}, changed_by=OWNER_ID)
        db_session.commit()

        assert len(reader.list_for_record(PET_ID, "pet_vaccinations", record.id)) == 1
        assert len(reader.list_for_upload(PET_ID, 11)) == 1
        assert reader.list_for_upload(OTHER_PET_ID, 11) == []


class TestRequestMetadata:

    def test_prefers_forwarded_for(self):
        request = MagicMock()
        request.headers = {"x-forwarded-for": "198.51.100.7, 10.0.0.2", "user-agent": "curl/8"}

        assert get_request_metadata(request) == ("198.51.100.7", "curl/8")

    def test_falls_back_to_client_host(self):
        request = MagicMock()
        request.headers = {}
        request.client.host = "127.0.0.1"

        assert get_request_metadata(request) == ("127.0.0.1", None)
