"""Hydration Reader: rebuilds fully populated agreement views.

One SELECT joins each agreement with its supplier and customer (plus their
organizations), both warehouses, and its material line items. The joined rows
are then folded into one ``AgreementDetail`` per agreement. Agreements with no
line items come back with ``materials == []``.
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from supply_platform.domain.errors import NotFoundError
from supply_platform.domain.models import (
    Agreement,
    AgreementMaterial,
    Material,
    Organization,
    User,
    Warehouse,
)
from supply_platform.domain.schemas import (
    AgreementDetail,
    AgreementMaterialResponse,
    MaterialResponse,
    OrganizationResponse,
    UserResponse,
    WarehouseResponse,
)
from supply_platform.infra.database import execute

logger = logging.getLogger(__name__)

Supplier = aliased(User, name="supplier")
SupplierOrganization = aliased(Organization, name="supplier_organization")
Customer = aliased(User, name="customer")
CustomerOrganization = aliased(Organization, name="customer_organization")
SupplierWarehouse = aliased(Warehouse, name="supplier_warehouse")
CustomerWarehouse = aliased(Warehouse, name="customer_warehouse")


def _hydration_query():
    return (
        select(
            Agreement,
            Supplier,
            SupplierOrganization,
            Customer,
            CustomerOrganization,
            SupplierWarehouse,
            CustomerWarehouse,
            AgreementMaterial,
            Material,
        )
        .join(Supplier, Agreement.supplier_id == Supplier.id)
        .outerjoin(SupplierOrganization, Supplier.organization_id == SupplierOrganization.id)
        .join(Customer, Agreement.customer_id == Customer.id)
        .outerjoin(CustomerOrganization, Customer.organization_id == CustomerOrganization.id)
        .join(SupplierWarehouse, Agreement.supplier_warehouse_id == SupplierWarehouse.id)
        .join(CustomerWarehouse, Agreement.customer_warehouse_id == CustomerWarehouse.id)
        .outerjoin(AgreementMaterial, AgreementMaterial.agreement_id == Agreement.id)
        .outerjoin(Material, AgreementMaterial.material_id == Material.id)
        .order_by(Agreement.id, AgreementMaterial.position, AgreementMaterial.material_id)
        # Rows loaded before a write in the same session must not shadow the new state
        .execution_options(populate_existing=True)
    )


def _user_view(user: User, organization: Optional[Organization]) -> UserResponse:
    view = UserResponse.model_validate(user)
    if organization is not None:
        view.organization = OrganizationResponse.model_validate(organization)
    return view


def _fold_rows(rows) -> list[AgreementDetail]:
    """Collapse one-row-per-line-item results into one view per agreement."""
    details: dict[int, AgreementDetail] = {}
    for (
        agreement,
        supplier,
        supplier_org,
        customer,
        customer_org,
        supplier_wh,
        customer_wh,
        link,
        material,
    ) in rows:
        detail = details.get(agreement.id)
        if detail is None:
            detail = AgreementDetail(
                id=agreement.id,
                supplier_id=agreement.supplier_id,
                customer_id=agreement.customer_id,
                supplier_warehouse_id=agreement.supplier_warehouse_id,
                customer_warehouse_id=agreement.customer_warehouse_id,
                status=agreement.status,
                created_at=agreement.created_at,
                updated_at=agreement.updated_at,
                supplier=_user_view(supplier, supplier_org),
                customer=_user_view(customer, customer_org),
                supplier_warehouse=WarehouseResponse.model_validate(supplier_wh),
                customer_warehouse=WarehouseResponse.model_validate(customer_wh),
                materials=[],
            )
            details[agreement.id] = detail

        if link is not None and material is not None:
            detail.materials.append(
                AgreementMaterialResponse(
                    material=MaterialResponse.model_validate(material),
                    amount=link.amount,
                )
            )
    return list(details.values())


class AgreementReader:
    """Read side of the agreement aggregate. Takes no transaction of its own."""

    async def find_all(self, db: AsyncSession) -> list[AgreementDetail]:
        """Return every agreement, hydrated, ordered by id. Empty list if none."""
        result = await execute(db, "findAll", _hydration_query())
        details = _fold_rows(result.all())
        logger.debug("Hydrated %d agreements", len(details))
        return details

    async def find_by_id(self, db: AsyncSession, agreement_id: int) -> AgreementDetail:
        """Return one hydrated agreement or raise NotFoundError."""
        result = await execute(
            db,
            "findById",
            _hydration_query().where(Agreement.id == agreement_id),
        )
        details = _fold_rows(result.all())
        if not details:
            raise NotFoundError("Agreement", agreement_id, "findById")
        return details[0]
