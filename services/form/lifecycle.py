"""
Form Lifecycle Service

Create, update, soft-delete and fetch forms.

Ownership is always checked by querying on id AND owner id together,
so a form owned by someone else looks exactly like a missing one.

State machine:
    Active --(soft delete)--> Inactive   (terminal, responses are kept)
"""

from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import store_operation, utcnow
from core.models import Form, Response
from core.schemas import FormCreate, FormUpdate
from services.form.validation import (
    normalize_description,
    normalize_field_definitions,
    normalize_settings,
    normalize_theme,
    normalize_title,
)
from utils.exceptions import NotFoundError
from utils.logging import get_logger, log_form_action

logger = get_logger(__name__)


class FormService:
    """Form operations scoped to a single database session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # =========================================================================
    # Lookups
    # =========================================================================

    async def _find_owned(self, owner_id: int, form_id: int) -> Optional[Form]:
        result = await self.db.execute(
            select(Form).where(Form.id == form_id, Form.owner_id == owner_id)
        )
        return result.scalars().first()

    @store_operation
    async def get_owned_form(self, owner_id: int, form_id: int) -> Form:
        """
        Fetch a form owned by ``owner_id``.

        Soft-deleted forms stay readable by their owner.

        Raises:
            NotFoundError: No such form, or not owned by the caller
        """
        form = await self._find_owned(owner_id, form_id)
        if form is None:
            logger.warning(f"Form {form_id} not found for owner {owner_id}")
            raise NotFoundError("Form not found", resource="form")
        return form

    @store_operation
    async def get_public_form(self, form_id: int) -> Form:
        """Fetch an active form for respondents (no ownership check)."""
        result = await self.db.execute(
            select(Form).where(Form.id == form_id, Form.is_active.is_(True))
        )
        form = result.scalars().first()
        if form is None:
            raise NotFoundError("Form not found or no longer available", resource="form")
        return form

    @store_operation
    async def list_owned_forms(self, owner_id: int) -> List[Dict[str, Any]]:
        """
        Active forms of ``owner_id``, most recently updated first.

        Returns:
            list: ``{"form": Form, "response_count": int}`` entries
        """
        result = await self.db.execute(
            select(Form)
            .where(Form.owner_id == owner_id, Form.is_active.is_(True))
            .order_by(Form.updated_at.desc(), Form.id.desc())
        )
        forms = list(result.scalars().all())
        counts = await self.response_counts([f.id for f in forms])
        return [{"form": f, "response_count": counts.get(f.id, 0)} for f in forms]

    async def response_counts(self, form_ids: List[int]) -> Dict[int, int]:
        """Responses per form id, one grouped query."""
        if not form_ids:
            return {}
        result = await self.db.execute(
            select(Response.form_id, func.count(Response.id))
            .where(Response.form_id.in_(form_ids))
            .group_by(Response.form_id)
        )
        return {form_id: count for form_id, count in result.all()}

    # =========================================================================
    # Writes
    # =========================================================================

    @store_operation
    async def create_form(self, owner_id: int, payload: FormCreate) -> Form:
        """
        Create a new active form.

        Raises:
            MissingRequiredInputError: Title absent or no fields
            InvalidFieldTypeError: A field names an unknown type
            InvalidInputError: Malformed field, theme or settings
        """
        title = normalize_title(payload.title)
        fields = normalize_field_definitions(payload.fields)
        theme = normalize_theme(payload.theme)
        form_settings = normalize_settings(payload.settings)

        now = utcnow()
        form = Form(
            owner_id=owner_id,
            title=title,
            description=normalize_description(payload.description),
            fields=fields,
            theme=theme,
            settings=form_settings,
            deadline=payload.deadline,
            category=(payload.category or "").strip(),
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        self.db.add(form)
        await self.db.commit()
        await self.db.refresh(form)

        log_form_action("created", form.id, True, f"{len(fields)} fields, owner {owner_id}")
        return form

    @store_operation
    async def update_form(self, owner_id: int, form_id: int, patch: FormUpdate) -> Form:
        """
        Apply the keys present in ``patch`` to an owned form.

        Fields are re-normalized exactly as on create; ``updated_at`` is
        always touched. Validation runs before the form is looked up.

        Raises:
            NotFoundError: No such form owned by ``owner_id``
        """
        changes = patch.model_dump(exclude_unset=True)
        updates: Dict[str, Any] = {}

        if "title" in changes:
            updates["title"] = normalize_title(changes["title"])
        if "description" in changes:
            updates["description"] = normalize_description(changes["description"])
        if "fields" in changes:
            updates["fields"] = normalize_field_definitions(changes["fields"])
        if "theme" in changes:
            updates["theme"] = normalize_theme(changes["theme"])
        if "settings" in changes:
            updates["settings"] = normalize_settings(changes["settings"])
        if "deadline" in changes:
            updates["deadline"] = changes["deadline"]
        if "category" in changes:
            updates["category"] = (changes["category"] or "").strip()

        form = await self._find_owned(owner_id, form_id)
        if form is None:
            logger.warning(f"Update rejected: form {form_id} not found for owner {owner_id}")
            raise NotFoundError("Form not found", resource="form")

        for key, value in updates.items():
            setattr(form, key, value)
        form.updated_at = utcnow()

        await self.db.commit()
        await self.db.refresh(form)

        log_form_action("updated", form.id, True, ", ".join(sorted(updates)) or "touch")
        return form

    @store_operation
    async def soft_delete_form(self, owner_id: int, form_id: int) -> None:
        """
        Mark an owned form inactive. Responses are not touched.

        Raises:
            NotFoundError: No such form owned by ``owner_id``
        """
        form = await self._find_owned(owner_id, form_id)
        if form is None:
            logger.warning(f"Delete rejected: form {form_id} not found for owner {owner_id}")
            raise NotFoundError("Form not found", resource="form")

        form.is_active = False
        form.updated_at = utcnow()
        await self.db.commit()

        log_form_action("soft-deleted", form_id, True)
