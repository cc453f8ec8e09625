"""Agreement routes: list, search, fetch, create, update and delete.

Transport checks (positive path ids, body shape, positive ids and amounts)
are done by FastAPI/pydantic and answer 400 before the service is called.
Everything else is validated by ``AgreementService``; its errors are turned
into responses by ``supply_platform.app.errors``.
"""

import logging

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from supply_platform.app.messages import (
    created_message,
    deleted_message,
    find_all_message,
    find_by_id_message,
    search_message,
    updated_message,
)
from supply_platform.domain.schemas import (
    MAX_ID,
    AgreementCreateRequest,
    AgreementEnvelope,
    AgreementListEnvelope,
    AgreementUpdateRequest,
)
from supply_platform.infra.database import get_db
from supply_platform.services.agreement_service import AgreementService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/agreements", tags=["agreements"])

ENTITY = "Agreement"


def get_agreement_service() -> AgreementService:
    """FastAPI dependency: a fresh AgreementService per request."""
    return AgreementService()


@router.get("", response_model=AgreementListEnvelope)
async def list_agreements(
    db: AsyncSession = Depends(get_db),
    service: AgreementService = Depends(get_agreement_service),
):
    """Return all agreements, hydrated."""
    agreements = await service.find_all(db)
    return AgreementListEnvelope(data=agreements, message=find_all_message(ENTITY))


# Declared before /{agreement_id} so "search" is not parsed as an id
@router.get("/search", response_model=AgreementListEnvelope)
async def search_agreements(
    q: str | None = Query(default=None),
    db: AsyncSession = Depends(get_db),
    service: AgreementService = Depends(get_agreement_service),
):
    """Rank agreements against the free-text query ``q``."""
    agreements = await service.search(db, q)
    return AgreementListEnvelope(data=agreements, message=search_message(ENTITY, len(agreements)))


@router.get("/{agreement_id}", response_model=AgreementEnvelope)
async def get_agreement(
    agreement_id: int = Path(gt=0, le=MAX_ID),
    db: AsyncSession = Depends(get_db),
    service: AgreementService = Depends(get_agreement_service),
):
    """Return one hydrated agreement."""
    agreement = await service.find_by_id(db, agreement_id)
    return AgreementEnvelope(data=agreement, message=find_by_id_message(ENTITY, agreement_id))


@router.post("", response_model=AgreementEnvelope, status_code=status.HTTP_201_CREATED)
async def create_agreement(
    body: AgreementCreateRequest,
    db: AsyncSession = Depends(get_db),
    service: AgreementService = Depends(get_agreement_service),
):
    """Create an agreement with its optional material line items."""
    agreement = await service.create(db, body.create_data, body.materials)
    return AgreementEnvelope(data=agreement, message=created_message(ENTITY))


@router.patch("/{agreement_id}", response_model=AgreementEnvelope)
async def update_agreement(
    body: AgreementUpdateRequest,
    agreement_id: int = Path(gt=0, le=MAX_ID),
    db: AsyncSession = Depends(get_db),
    service: AgreementService = Depends(get_agreement_service),
):
    """Partially update an agreement and/or replace its material line items."""
    agreement = await service.update(db, agreement_id, body.update_data, body.materials)
    return AgreementEnvelope(data=agreement, message=updated_message(ENTITY))


@router.delete("/{agreement_id}", response_model=AgreementEnvelope)
async def delete_agreement(
    agreement_id: int = Path(gt=0, le=MAX_ID),
    db: AsyncSession = Depends(get_db),
    service: AgreementService = Depends(get_agreement_service),
):
    """Delete an agreement and return it as it was before deletion."""
    agreement = await service.delete(db, agreement_id)
    logger.info("Agreement %s deleted via API", agreement_id)
    return AgreementEnvelope(data=agreement, message=deleted_message(ENTITY))
