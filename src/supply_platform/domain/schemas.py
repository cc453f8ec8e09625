"""Pydantic v2 schemas for API request/response validation."""

from datetime import datetime
from decimal import Decimal, InvalidOperation

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Ids are stored as signed 64-bit integers
MAX_ID = 2**63 - 1
# Scale of agreement_materials.amount
AMOUNT_SCALE = 3
# Length of agreements.status
STATUS_MAX_LENGTH = 100


def fits_amount_scale(value) -> bool:
    """True if ``value`` has no more than AMOUNT_SCALE decimal places."""
    try:
        exponent = Decimal(str(value)).as_tuple().exponent
    except (InvalidOperation, ValueError):
        return False
    return isinstance(exponent, int) and exponent >= -AMOUNT_SCALE


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


class OrganizationResponse(BaseModel):
    """Organization as embedded in a hydrated agreement."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    latitude: float | None = None
    longitude: float | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class UserResponse(BaseModel):
    """Supplier or customer user with its organization resolved."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    organization_id: int | None = None
    is_admin: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None
    organization: OrganizationResponse | None = None


class WarehouseResponse(BaseModel):
    """Warehouse row referenced by an agreement."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    organization_id: int | None = None
    latitude: float | None = None
    longitude: float | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class MaterialResponse(BaseModel):
    """Material row referenced by an agreement line item."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


# ---------------------------------------------------------------------------
# Agreement: requests
# ---------------------------------------------------------------------------


class MaterialLine(BaseModel):
    """One requested line item: a material and its quantity."""

    material_id: int = Field(gt=0, le=MAX_ID)
    amount: float = Field(gt=0)

    @field_validator("amount")
    @classmethod
    def amount_within_scale(cls, v: float) -> float:
        if not fits_amount_scale(v):
            raise ValueError(f"amount allows at most {AMOUNT_SCALE} decimal places")
        return v


class AgreementCreate(BaseModel):
    """Fields required to create an agreement."""

    supplier_id: int = Field(gt=0, le=MAX_ID)
    customer_id: int = Field(gt=0, le=MAX_ID)
    supplier_warehouse_id: int = Field(gt=0, le=MAX_ID)
    customer_warehouse_id: int = Field(gt=0, le=MAX_ID)
    status: str | None = Field(default=None, max_length=STATUS_MAX_LENGTH)


class AgreementUpdate(BaseModel):
    """Partial update. Only the fields the caller sets are written."""

    supplier_id: int | None = Field(default=None, gt=0, le=MAX_ID)
    customer_id: int | None = Field(default=None, gt=0, le=MAX_ID)
    supplier_warehouse_id: int | None = Field(default=None, gt=0, le=MAX_ID)
    customer_warehouse_id: int | None = Field(default=None, gt=0, le=MAX_ID)
    status: str | None = Field(default=None, max_length=STATUS_MAX_LENGTH)


class AgreementCreateRequest(BaseModel):
    """POST body: ``{createData: {...}, materials?: [...]}``."""

    model_config = ConfigDict(populate_by_name=True)

    create_data: AgreementCreate = Field(alias="createData")
    materials: list[MaterialLine] | None = None


class AgreementUpdateRequest(BaseModel):
    """PATCH body: ``{updateData?: {...}, materials?: [...]}``."""

    model_config = ConfigDict(populate_by_name=True)

    update_data: AgreementUpdate | None = Field(default=None, alias="updateData")
    materials: list[MaterialLine] | None = None


# ---------------------------------------------------------------------------
# Agreement: hydrated view
# ---------------------------------------------------------------------------


class AgreementMaterialResponse(BaseModel):
    """A material together with the agreed amount."""

    material: MaterialResponse
    amount: float


class AgreementDetail(BaseModel):
    """Fully hydrated agreement. The only agreement shape returned to callers."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    supplier_id: int
    customer_id: int
    supplier_warehouse_id: int
    customer_warehouse_id: int
    status: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    supplier: UserResponse
    customer: UserResponse
    supplier_warehouse: WarehouseResponse
    customer_warehouse: WarehouseResponse
    materials: list[AgreementMaterialResponse] = []


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------


class AgreementEnvelope(BaseModel):
    """Single agreement response: ``{data, message}``."""

    data: AgreementDetail
    message: str


class AgreementListEnvelope(BaseModel):
    """Agreement collection response: ``{data, message}``."""

    data: list[AgreementDetail]
    message: str


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    service: str
