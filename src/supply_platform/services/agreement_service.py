"""Agreement Service: the transactional write side of the agreement aggregate.

Every create, update and delete:
    1. validates its input and the foreign keys it references (fail-fast),
    2. runs all of its statements inside one ``transaction()`` so the
       agreement row and its material line items change together or not at all,
    3. re-reads the result through ``AgreementReader`` and returns the
       hydrated view.

All methods are async and take the caller's AsyncSession. Nothing is cached
between calls; concurrent writes to the same agreement are last-writer-wins.
"""

import logging
from contextlib import contextmanager
from typing import Any, Optional

from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import func

from supply_platform.app.config import get_settings
from supply_platform.domain.errors import ServiceError, ValidationError
from supply_platform.domain.models import Agreement, AgreementMaterial
from supply_platform.domain.schemas import AgreementDetail
from supply_platform.infra.database import execute, transaction
from supply_platform.services.agreement_reader import AgreementReader
from supply_platform.services.agreement_search import AgreementSearchIndex
from supply_platform.services.reference_validator import (
    REFERENCE_FIELDS,
    ReferenceValidator,
    as_field_dict,
    require_positive_id,
    validate_status,
)

logger = logging.getLogger(__name__)

SERVICE_NAME = "AgreementService"

# Scalar columns a caller may set on create / update
MUTABLE_FIELDS = (*REFERENCE_FIELDS, "status")


@contextmanager
def _wrap_unexpected(operation: str, message: str):
    """Let taxonomy errors through; wrap anything else into ServiceError."""
    try:
        yield
    except ServiceError:
        raise
    except Exception as exc:
        logger.exception("[Agreement] %s failed unexpectedly", operation)
        raise ServiceError(message, SERVICE_NAME, operation, cause=exc) from exc


class AgreementService:
    """Create, update, delete, read and search agreements."""

    def __init__(
        self,
        reader: Optional[AgreementReader] = None,
        validator: Optional[ReferenceValidator] = None,
        search_threshold: Optional[float] = None,
        search_min_match_length: Optional[int] = None,
    ):
        settings = get_settings()
        self.reader = reader or AgreementReader()
        self.validator = validator or ReferenceValidator()
        self.search_threshold = (
            search_threshold if search_threshold is not None else settings.search_threshold
        )
        self.search_min_match_length = (
            search_min_match_length
            if search_min_match_length is not None
            else settings.search_min_match_length
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def find_all(self, db: AsyncSession) -> list[AgreementDetail]:
        """Return every agreement, hydrated."""
        with _wrap_unexpected("findAll", "Failed to retrieve agreements"):
            return await self.reader.find_all(db)

    async def find_by_id(self, db: AsyncSession, agreement_id: Any) -> AgreementDetail:
        """Return one hydrated agreement or raise NotFoundError."""
        with _wrap_unexpected("findById", f"Failed to find agreement with id {agreement_id}"):
            require_positive_id("id", agreement_id, "findById")
            return await self.reader.find_by_id(db, agreement_id)

    async def search(self, db: AsyncSession, query: Any) -> list[AgreementDetail]:
        """Rank all agreements against free text ``query``.

        Raises:
            ValidationError: If the query is missing, not text, or blank.
        """
        with _wrap_unexpected("search", "Failed to search agreements"):
            if not isinstance(query, str) or not query.strip():
                raise ValidationError("Search query is required", "search", "q", query)

            agreements = await self.reader.find_all(db)
            index = AgreementSearchIndex(
                agreements,
                threshold=self.search_threshold,
                min_match_length=self.search_min_match_length,
            )
            results = index.search(query)
            logger.info(
                "[Agreement] Search %r matched %d of %d", query, len(results), len(agreements)
            )
            return results

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create(
        self,
        db: AsyncSession,
        create_data: Any,
        materials: Any = None,
    ) -> AgreementDetail:
        """Create an agreement and its material line items atomically.

        Steps:
            1. Validate supplier, customer, supplier warehouse, customer
               warehouse (all required, in that order)
            2. Validate status when given
            3. Insert the agreement row, then one line item per material,
               all inside one transaction
            4. Return the hydrated agreement

        Args:
            db: Active async SQLAlchemy session.
            create_data: Mapping or ``AgreementCreate`` with the scalar fields.
            materials: Optional list of ``{material_id, amount}``. ``None``
                means "not supplied"; ``[]`` creates no line items.

        Raises:
            ValidationError: Missing/invalid field, blank status, non-list
                materials, non-positive amount.
            NotFoundError: A referenced user, warehouse or material is missing.
            StorageError: The database failed; nothing was written.
        """
        operation = "create"
        with _wrap_unexpected(operation, "Failed to create agreement"):
            data = as_field_dict(create_data, operation, "Request body is required")

            await self.validator.validate_references(db, data, operation, required=True)
            status = validate_status(data.get("status"), operation)
            if materials is not None:
                self.validator.validate_materials_list(materials, operation)

            async with transaction(db, operation):
                agreement = Agreement(
                    supplier_id=data["supplier_id"],
                    customer_id=data["customer_id"],
                    supplier_warehouse_id=data["supplier_warehouse_id"],
                    customer_warehouse_id=data["customer_warehouse_id"],
                    status=status,
                )
                db.add(agreement)
                await db.flush()
                agreement_id = agreement.id

                if materials is not None:
                    await self._insert_materials(db, agreement_id, materials, operation)

            logger.info(
                "[Agreement] Created agreement id=%s with %d material(s)",
                agreement_id,
                len(materials or []),
            )
            return await self.reader.find_by_id(db, agreement_id)

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    async def update(
        self,
        db: AsyncSession,
        agreement_id: Any,
        update_data: Any = None,
        materials: Any = None,
    ) -> AgreementDetail:
        """Apply a partial update and/or replace the material set atomically.

        Only the fields present in ``update_data`` are written. When
        ``materials`` is given the existing line items are deleted and the new
        list inserted (``[]`` clears them); when it is ``None`` the line items
        are not touched.

        Raises:
            ValidationError: Bad id, nothing to update, invalid field values.
            NotFoundError: Agreement or a referenced entity is missing.
            StorageError: The database failed; the previous state is kept.
        """
        operation = "update"
        with _wrap_unexpected(operation, f"Failed to update agreement with id {agreement_id}"):
            require_positive_id("id", agreement_id, operation)
            await self.reader.find_by_id(db, agreement_id)

            if update_data is None:
                data = {}
            else:
                data = as_field_dict(update_data, operation, "Update data must be an object")
            fields = {name: data[name] for name in MUTABLE_FIELDS if name in data}

            if not fields and materials is None:
                raise ValidationError("Update data is required", operation, "updateData", update_data)

            await self.validator.validate_references(db, fields, operation, required=False)
            if "status" in fields:
                fields["status"] = validate_status(fields["status"], operation)
            if materials is not None:
                self.validator.validate_materials_list(materials, operation)

            async with transaction(db, operation):
                await execute(
                    db,
                    "updateAgreement",
                    update(Agreement)
                    .where(Agreement.id == agreement_id)
                    .values(**fields, updated_at=func.now())
                    .execution_options(synchronize_session=False),
                )

                if materials is not None:
                    await execute(
                        db,
                        "clearMaterials",
                        delete(AgreementMaterial).where(AgreementMaterial.agreement_id == agreement_id),
                    )
                    await self._insert_materials(db, agreement_id, materials, operation)

            logger.info(
                "[Agreement] Updated agreement id=%s fields=%s materials=%s",
                agreement_id,
                sorted(fields),
                "replaced" if materials is not None else "kept",
            )
            return await self.reader.find_by_id(db, agreement_id)

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    async def delete(self, db: AsyncSession, agreement_id: Any) -> AgreementDetail:
        """Delete an agreement and its line items; return the deleted agreement.

        Not idempotent: deleting an id that no longer exists raises
        NotFoundError.
        """
        operation = "delete"
        with _wrap_unexpected(operation, f"Failed to delete agreement with id {agreement_id}"):
            require_positive_id("id", agreement_id, operation)
            snapshot = await self.reader.find_by_id(db, agreement_id)

            async with transaction(db, operation):
                await execute(
                    db,
                    "deleteMaterials",
                    delete(AgreementMaterial).where(AgreementMaterial.agreement_id == agreement_id),
                )
                await execute(
                    db,
                    "deleteAgreement",
                    delete(Agreement).where(Agreement.id == agreement_id),
                )

            logger.info("[Agreement] Deleted agreement id=%s", agreement_id)
            return snapshot

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _insert_materials(
        self,
        db: AsyncSession,
        agreement_id: int,
        materials: list,
        operation: str,
    ) -> None:
        """Validate and insert line items in list order. Caller owns the transaction."""
        seen: set[int] = set()
        for position, line in enumerate(materials):
            material_id, amount = await self.validator.validate_material_line(
                db, line, operation, seen
            )
            db.add(
                AgreementMaterial(
                    agreement_id=agreement_id,
                    material_id=material_id,
                    amount=amount,
                    position=position,
                )
            )
        await db.flush()
