"""
Response Ingestion Service

Validates submissions against a form's live field list, enriches them
with request metadata and persists them. Also serves the response read
paths (single response, per-form listings, paginated submissions).

Submission order:
    1. authenticated submitter present
    2. form id and answers present
    3. form exists and is active
    4. answers normalized
    5. user agent classified
    6. response stored
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from config.constants import ALL_RESPONSES_LIMIT, DEFAULT_PAGE_SIZE
from config.settings import settings
from core.database import store_operation, utcnow
from core.models import Form, Response, User
from services.form.user_agent import classify_user_agent
from services.form.validation import normalize_submission, validate_submission_envelope
from utils.exceptions import (
    AuthenticationRequiredError,
    FormNotAcceptingResponsesError,
    InvalidInputError,
    NotFoundError,
)
from utils.logging import get_logger, log_form_action

logger = get_logger(__name__)


@dataclass
class RequestMeta:
    """Request metadata captured with a submission."""
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


def resolve_answers(form: Optional[Form], answers: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Resolve stored answers against the form's current fields.

    Fields removed since submission fall back to the stored
    field type and label.
    """
    resolved = []
    for answer in answers or []:
        field = form.find_field(answer.get("field_id")) if form is not None else None
        resolved.append({
            **answer,
            "field_type": (field or {}).get("type") or answer.get("field_type"),
            "field_label": (field or {}).get("label") or answer.get("label"),
        })
    return resolved


class ResponseService:
    """Response operations scoped to a single database session."""

    def __init__(self, db: AsyncSession, strict: Optional[bool] = None):
        self.db = db
        self.strict = settings.STRICT_SUBMISSION_VALIDATION if strict is None else strict

    # =========================================================================
    # Submission
    # =========================================================================

    @store_operation
    async def submit_response(
        self,
        submitter_id: Optional[int],
        form_id: Any,
        answers: Any,
        time_spent: Optional[float] = None,
        meta: Optional[RequestMeta] = None,
    ) -> int:
        """
        Store one submission and return its id.

        Raises:
            AuthenticationRequiredError: No authenticated submitter
            MissingRequiredInputError: Form id or answers missing
            FormNotAcceptingResponsesError: Form missing or soft-deleted
            InvalidInputError: Malformed answers (or strict-mode violations)
        """
        if submitter_id is None:
            raise AuthenticationRequiredError("You must be logged in to submit a response")

        validate_submission_envelope(form_id, answers)

        result = await self.db.execute(
            select(Form).where(Form.id == form_id, Form.is_active.is_(True))
        )
        form = result.scalars().first()
        if form is None:
            log_form_action("submit", form_id, False, "form not accepting responses")
            raise FormNotAcceptingResponsesError(form_id=form_id)

        normalized = normalize_submission(form, answers, time_spent=time_spent, strict=self.strict)

        meta = meta or RequestMeta()
        agent = classify_user_agent(meta.user_agent)

        response = Response(
            form_id=form.id,
            user_id=submitter_id,
            answers=[a.to_document() for a in normalized.answers],
            submitted_at=utcnow(),
            ip_address=meta.ip_address,
            user_agent=meta.user_agent,
            time_spent=normalized.time_spent,
            device_type=agent.device_type,
            browser=agent.browser,
            os=agent.os,
        )
        self.db.add(response)
        await self.db.commit()
        await self.db.refresh(response)

        log_form_action(
            "submit", form.id, True,
            f"response={response.id} user={submitter_id} device={agent.device_type}",
        )
        return response.id

    # =========================================================================
    # Reads
    # =========================================================================

    @store_operation
    async def get_response(self, viewer_id: int, response_id: int) -> Dict[str, Any]:
        """
        Fetch one response with its form title.

        Visible to the form's owner and to the submitter, also after the
        form was soft-deleted.

        Raises:
            NotFoundError: Absent, or the viewer is neither owner nor submitter
        """
        result = await self.db.execute(
            select(Response, Form)
            .join(Form, Form.id == Response.form_id)
            .where(
                Response.id == response_id,
                or_(Form.owner_id == viewer_id, Response.user_id == viewer_id),
            )
        )
        row = result.first()
        if row is None:
            logger.warning(f"Response {response_id} not visible to user {viewer_id}")
            raise NotFoundError("Response not found", resource="response")

        response, form = row
        return {"response": response, "form_title": form.title}

    async def _with_submitters(self, query) -> List[Dict[str, Any]]:
        result = await self.db.execute(query)
        return [
            {
                "response": response,
                "form_title": form_title,
                "user": {"name": name, "email": email} if email is not None else None,
            }
            for response, form_title, name, email in result.all()
        ]

    @staticmethod
    def _submitter_query():
        return (
            select(Response, Form.title, User.name, User.email)
            .join(Form, Form.id == Response.form_id)
            .outerjoin(User, User.id == Response.user_id)
        )

    @store_operation
    async def list_form_responses(self, owner_id: int, form_id: int) -> List[Dict[str, Any]]:
        """All responses of an owned form, newest first, with submitters."""
        owned = await self.db.execute(
            select(Form.id).where(Form.id == form_id, Form.owner_id == owner_id)
        )
        if owned.first() is None:
            raise NotFoundError("Form not found", resource="form")

        return await self._with_submitters(
            self._submitter_query()
            .where(Response.form_id == form_id)
            .order_by(Response.submitted_at.desc(), Response.id.desc())
        )

    @store_operation
    async def list_all_responses(self, owner_id: int) -> List[Dict[str, Any]]:
        """Most recent responses across the owner's active forms."""
        return await self._with_submitters(
            self._submitter_query()
            .where(Form.owner_id == owner_id, Form.is_active.is_(True))
            .order_by(Response.submitted_at.desc(), Response.id.desc())
            .limit(ALL_RESPONSES_LIMIT)
        )

    @store_operation
    async def list_submissions(
        self,
        owner_id: int,
        form_id: int,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> Dict[str, Any]:
        """
        One page of an owned form's submissions, newest first.

        Answers are resolved against the form's current fields.

        Returns:
            dict: ``submissions`` (list of dicts) and ``pagination``
        """
        if page < 1 or limit < 1:
            raise InvalidInputError("Page and limit must be positive", field="page")

        result = await self.db.execute(
            select(Form).where(Form.id == form_id, Form.owner_id == owner_id)
        )
        form = result.scalars().first()
        if form is None:
            raise NotFoundError("Form not found", resource="form")

        total = (await self.db.execute(
            select(func.count(Response.id)).where(Response.form_id == form_id)
        )).scalar_one()

        rows = await self.db.execute(
            select(Response)
            .where(Response.form_id == form_id)
            .order_by(Response.submitted_at.desc(), Response.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )

        submissions = [
            {
                "id": r.id,
                "responses": resolve_answers(form, r.answers),
                "submitted_at": r.submitted_at,
                "ip_address": r.ip_address,
                "user_agent": r.user_agent,
                "device_type": r.device_type,
                "browser": r.browser,
                "os": r.os,
                "time_spent": r.time_spent,
            }
            for r in rows.scalars().all()
        ]

        total_pages = math.ceil(total / limit)
        return {
            "submissions": submissions,
            "pagination": {
                "current_page": page,
                "total_pages": total_pages,
                "total_submissions": total,
                "has_next_page": page < total_pages,
                "has_prev_page": page > 1,
            },
        }
