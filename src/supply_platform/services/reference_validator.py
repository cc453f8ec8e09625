"""Reference Validator: existence and shape checks for agreement inputs.

Pure reads. Nothing here mutates the database, so every check can run
before a write transaction is opened (material lines are the exception: the
writer validates them inside its transaction, right before each insert).

Checks are fail-fast: the first failing field raises and later fields are
not examined.
"""

from collections.abc import Mapping
from decimal import Decimal
from numbers import Real
from typing import Any, Optional

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from supply_platform.domain.errors import NotFoundError, ValidationError
from supply_platform.domain.models import Agreement, Material, User, Warehouse
from supply_platform.domain.schemas import (
    AMOUNT_SCALE,
    MAX_ID,
    STATUS_MAX_LENGTH,
    fits_amount_scale,
)
from supply_platform.infra.database import execute

COLLECTIONS = {
    "users": User,
    "warehouses": Warehouse,
    "materials": Material,
    "agreements": Agreement,
}

# field -> (collection, entity name used in NotFoundError), in validation order
REFERENCE_FIELDS: dict[str, tuple[str, str]] = {
    "supplier_id": ("users", "Supplier"),
    "customer_id": ("users", "Customer"),
    "supplier_warehouse_id": ("warehouses", "Supplier warehouse"),
    "customer_warehouse_id": ("warehouses", "Customer warehouse"),
}


# ---------------------------------------------------------------------------
# Existence checks (collaborator contracts)
# ---------------------------------------------------------------------------


async def check_exists(db: AsyncSession, collection: str, entity_id: int) -> bool:
    """Return True if ``entity_id`` is a row of ``collection``."""
    model = COLLECTIONS.get(collection)
    if model is None:
        raise ValueError(f"Unknown collection: {collection}")
    result = await execute(
        db,
        f"check_{collection}",
        select(model.id).where(model.id == entity_id),
    )
    return result.scalar_one_or_none() is not None


async def user_exists(db: AsyncSession, user_id: int) -> bool:
    return await check_exists(db, "users", user_id)


async def warehouse_exists(db: AsyncSession, warehouse_id: int) -> bool:
    return await check_exists(db, "warehouses", warehouse_id)


async def material_exists(db: AsyncSession, material_id: int) -> bool:
    return await check_exists(db, "materials", material_id)


# ---------------------------------------------------------------------------
# Field checks
# ---------------------------------------------------------------------------


def is_positive_int(value: Any) -> bool:
    # bool is an int subclass; True must not pass as id 1
    return isinstance(value, int) and not isinstance(value, bool) and 0 < value <= MAX_ID


def require_positive_id(field: str, value: Any, operation: str) -> int:
    """Return ``value`` if it is a positive integer, else raise ValidationError."""
    if value is None:
        raise ValidationError(f"{field} is required", operation, field, value)
    if not is_positive_int(value):
        raise ValidationError(
            f"{field} must be a positive integer, got {value!r}",
            operation,
            field,
            value,
        )
    return value


def validate_status(value: Any, operation: str) -> Optional[str]:
    """Status is optional, but when given it must be non-blank text."""
    if value is None:
        return None
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("status cannot be empty", operation, "status", value)
    if len(value) > STATUS_MAX_LENGTH:
        raise ValidationError(
            f"status must be at most {STATUS_MAX_LENGTH} characters",
            operation,
            "status",
            value,
        )
    return value


def as_field_dict(data: Any, operation: str, message: str) -> dict:
    """Normalize a request payload (mapping or pydantic model) to a plain dict.

    Pydantic models contribute only the fields the caller explicitly set.
    """
    if isinstance(data, BaseModel):
        return data.model_dump(exclude_unset=True)
    if isinstance(data, Mapping):
        return dict(data)
    raise ValidationError(message, operation, None, data)


# ---------------------------------------------------------------------------
# Reference validation
# ---------------------------------------------------------------------------


class ReferenceValidator:
    """Validates the foreign keys and material lines of an agreement write."""

    async def validate_reference(
        self,
        db: AsyncSession,
        field: str,
        value: Any,
        operation: str,
    ) -> int:
        """Positivity then existence check for one reference field."""
        collection, entity = REFERENCE_FIELDS[field]
        entity_id = require_positive_id(field, value, operation)
        if not await check_exists(db, collection, entity_id):
            raise NotFoundError(entity, entity_id, operation)
        return entity_id

    async def validate_references(
        self,
        db: AsyncSession,
        data: dict,
        operation: str,
        required: bool,
    ) -> None:
        """Check supplier, customer, supplier warehouse, customer warehouse in order.

        With ``required`` every field must be present; otherwise only the
        fields present in ``data`` are checked.
        """
        for field in REFERENCE_FIELDS:
            if field not in data:
                if required:
                    raise ValidationError(f"{field} is required", operation, field, None)
                continue
            await self.validate_reference(db, field, data[field], operation)

    def validate_materials_list(self, materials: Any, operation: str) -> list:
        """The materials payload must be a real list (possibly empty)."""
        if not isinstance(materials, list):
            raise ValidationError(
                "materials must be a list",
                operation,
                "materials",
                materials,
            )
        return materials

    async def validate_material_line(
        self,
        db: AsyncSession,
        line: Any,
        operation: str,
        seen: Optional[set] = None,
    ) -> tuple[int, float]:
        """Validate one ``{material_id, amount}`` element and return it as a tuple.

        Order: material_id positive, not repeated, material exists, amount > 0
        with at most AMOUNT_SCALE decimal places.
        """
        if isinstance(line, BaseModel):
            line = line.model_dump()
        if not isinstance(line, Mapping):
            raise ValidationError(
                "Each material must be an object with material_id and amount",
                operation,
                "materials",
                line,
            )

        material_id = require_positive_id("material_id", line.get("material_id"), operation)
        if seen is not None:
            if material_id in seen:
                raise ValidationError(
                    f"Material {material_id} is listed more than once",
                    operation,
                    "material_id",
                    material_id,
                )
            seen.add(material_id)

        if not await material_exists(db, material_id):
            raise NotFoundError("Material", material_id, operation)

        amount = line.get("amount")
        if (
            amount is None
            or isinstance(amount, bool)
            or not isinstance(amount, (Real, Decimal))
            or amount <= 0
        ):
            raise ValidationError(
                f"Amount for material {material_id} must be positive",
                operation,
                "amount",
                amount,
            )
        if not fits_amount_scale(amount):
            raise ValidationError(
                f"Amount for material {material_id} allows at most {AMOUNT_SCALE} decimal places",
                operation,
                "amount",
                amount,
            )
        return material_id, float(amount)
