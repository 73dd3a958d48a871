"""Reviewer API endpoints with simple API key auth."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status

from site_survey.domain.inspections import InspectionStatus
from site_survey.services.review import serialize_review

if TYPE_CHECKING:
    from site_survey.containers import AppContainer

router = APIRouter(prefix="/reviews", tags=["reviews"])


def _get_reviewer_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.reviewer_token


async def require_reviewer(
    x_api_key: str | None = Header(default=None),
    reviewer_token: str = Depends(_get_reviewer_token),
) -> None:
    """Ensure requests include a valid reviewer API key."""
    if not x_api_key or x_api_key != reviewer_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.get("", dependencies=[Depends(require_reviewer)])
async def list_reviews(
    request: Request,
    status_filter: InspectionStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=200),
) -> dict[str, object]:
    """Return recent inspections with signed photo links."""
    container: AppContainer = request.app.state.container
    reviews = container.review_service.list_reviews(status_filter, limit)
    return {"inspections": [serialize_review(review) for review in reviews]}


@router.get("/{inspection_id}", dependencies=[Depends(require_reviewer)])
async def review_detail(inspection_id: str, request: Request) -> dict[str, object]:
    """Return one inspection review without changing its status."""
    container: AppContainer = request.app.state.container
    inspection = container.inspection_service.get(inspection_id)
    if inspection is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    return serialize_review(container.review_service.build_review(inspection))
