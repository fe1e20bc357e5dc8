"""
Tests for the Form Lifecycle Service
"""

from datetime import datetime

import pytest
from sqlalchemy import func, select

from core.models import Form
from core.schemas import FormCreate, FormUpdate
from services.form import lifecycle
from services.form.lifecycle import FormService
from utils.exceptions import InvalidFieldTypeError, MissingRequiredInputError, NotFoundError


async def _form_count(db) -> int:
    return (await db.execute(select(func.count(Form.id)))).scalar_one()


class TestCreateForm:

    async def test_create_assigns_order_and_defaults(self, db, make_user, sample_fields):
        owner = await make_user()
        service = FormService(db)

        form = await service.create_form(
            owner.id, FormCreate(title="  Feedback  ", fields=sample_fields)
        )

        assert form.title == "Feedback"
        assert form.is_active is True
        assert form.theme == "default"
        assert form.category == ""
        assert form.created_at == form.updated_at
        assert [f["order"] for f in form.fields] == list(range(len(sample_fields)))
        assert form.settings["submit_button_text"] == "Submit"

    async def test_missing_title_writes_nothing(self, db, make_user, sample_fields):
        owner = await make_user()

        with pytest.raises(MissingRequiredInputError):
            await FormService(db).create_form(owner.id, FormCreate(fields=sample_fields))

        assert await _form_count(db) == 0

    async def test_empty_fields_rejected(self, db, make_user):
        owner = await make_user()

        with pytest.raises(MissingRequiredInputError):
            await FormService(db).create_form(owner.id, FormCreate(title="T", fields=[]))

    async def test_invalid_field_type_writes_nothing(self, db, make_user):
        owner = await make_user()

        with pytest.raises(InvalidFieldTypeError):
            await FormService(db).create_form(
                owner.id,
                FormCreate(title="T", fields=[{"id": "a", "type": "video", "label": "A"}]),
            )

        assert await _form_count(db) == 0

    async def test_deadline_with_offset_stored_as_utc(self, db, make_user, sample_fields):
        owner = await make_user()

        form = await FormService(db).create_form(owner.id, FormCreate(
            title="T", fields=sample_fields, deadline="2026-10-20T10:00:00+05:30",
        ))
        await db.refresh(form)

        assert form.deadline == datetime(2026, 10, 20, 4, 30)


class TestUpdateForm:

    async def test_update_reassigns_order_and_touches_updated_at(self, db, make_user, monkeypatch):
        owner = await make_user()
        service = FormService(db)
        form = await service.create_form(
            owner.id, FormCreate(title="T", fields=[{"id": "a", "type": "text", "label": "A"}])
        )

        later = datetime(2030, 1, 1, 9, 0)
        monkeypatch.setattr(lifecycle, "utcnow", lambda: later)

        updated = await service.update_form(owner.id, form.id, FormUpdate(fields=[
            {"id": "b", "type": "email", "label": "B", "order": 9},
            {"id": "a", "type": "text", "label": "A", "order": 4},
        ]))

        assert [f["id"] for f in updated.fields] == ["b", "a"]
        assert [f["order"] for f in updated.fields] == [0, 1]
        assert updated.updated_at == later
        assert updated.title == "T"

    async def test_partial_update_keeps_other_attributes(self, db, make_user, sample_fields):
        owner = await make_user()
        service = FormService(db)
        form = await service.create_form(
            owner.id, FormCreate(title="T", fields=sample_fields, theme="dark")
        )

        updated = await service.update_form(owner.id, form.id, FormUpdate(title="New"))

        assert updated.title == "New"
        assert updated.theme == "dark"
        assert len(updated.fields) == len(sample_fields)

    async def test_other_owner_gets_not_found(self, db, make_user, make_form):
        owner = await make_user()
        stranger = await make_user(email="stranger@example.com")
        form = await make_form(owner)

        with pytest.raises(NotFoundError):
            await FormService(db).update_form(stranger.id, form.id, FormUpdate(title="Mine"))

        await db.refresh(form)
        assert form.title == "Survey"

    async def test_missing_form_gets_not_found(self, db, make_user):
        owner = await make_user()

        with pytest.raises(NotFoundError):
            await FormService(db).update_form(owner.id, 999, FormUpdate(title="X"))

    async def test_deadline_update_converted_to_utc(self, db, make_user, make_form):
        owner = await make_user()
        form = await make_form(owner)

        updated = await FormService(db).update_form(
            owner.id, form.id, FormUpdate(deadline="2026-10-20T10:00:00+05:30")
        )
        await db.refresh(updated)

        assert updated.deadline == datetime(2026, 10, 20, 4, 30)
        assert updated.deadline.tzinfo is None


class TestSoftDelete:

    async def test_soft_delete_hides_form(self, db, make_user, make_form):
        owner = await make_user()
        form = await make_form(owner)
        service = FormService(db)

        await service.soft_delete_form(owner.id, form.id)

        with pytest.raises(NotFoundError):
            await service.get_public_form(form.id)
        assert await service.list_owned_forms(owner.id) == []

        # Still visible to its owner
        owned = await service.get_owned_form(owner.id, form.id)
        assert owned.is_active is False

    async def test_soft_delete_by_stranger_rejected(self, db, make_user, make_form):
        owner = await make_user()
        stranger = await make_user(email="stranger@example.com")
        form = await make_form(owner)

        with pytest.raises(NotFoundError):
            await FormService(db).soft_delete_form(stranger.id, form.id)

        await db.refresh(form)
        assert form.is_active is True


class TestListing:

    async def test_list_sorted_by_update_with_counts(self, db, make_user, make_form, make_response):
        owner = await make_user()
        older = await make_form(owner, title="Older", updated_at=datetime(2024, 1, 1))
        newer = await make_form(owner, title="Newer", updated_at=datetime(2024, 5, 1))
        await make_response(older, owner)
        await make_response(older, owner)

        entries = await FormService(db).list_owned_forms(owner.id)

        assert [e["form"].title for e in entries] == ["Newer", "Older"]
        assert [e["response_count"] for e in entries] == [0, 2]
        assert newer.id == entries[0]["form"].id

    async def test_list_only_includes_own_forms(self, db, make_user, make_form):
        owner = await make_user()
        stranger = await make_user(email="stranger@example.com")
        await make_form(stranger)

        assert await FormService(db).list_owned_forms(owner.id) == []
