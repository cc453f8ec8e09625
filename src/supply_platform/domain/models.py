"""SQLAlchemy ORM models for the Supply Platform.

Collaborator tables (organizations, users, warehouses, materials) are plain
single-table records. The agreement aggregate is ``Agreement`` plus its
``AgreementMaterial`` association rows, which are written exclusively by
``AgreementService``.
"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.sql import func

from supply_platform.domain.schemas import AMOUNT_SCALE, STATUS_MAX_LENGTH
from supply_platform.infra.database import Base


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


class Organization(Base):
    """Company that employs users and owns warehouses."""

    __tablename__ = "organizations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())


class User(Base):
    """Platform user. Acts as supplier or customer on agreements."""

    __tablename__ = "app_users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=True, index=True)
    is_admin = Column(Boolean, default=False)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())


class Warehouse(Base):
    """Physical warehouse belonging to an organization."""

    __tablename__ = "warehouses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=True, index=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())


class Material(Base):
    """Tradeable material referenced by agreement line items."""

    __tablename__ = "materials"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())


# ---------------------------------------------------------------------------
# Agreement aggregate
# ---------------------------------------------------------------------------


class Agreement(Base):
    """Supply contract between a supplier user and a customer user."""

    __tablename__ = "agreements"

    id = Column(Integer, primary_key=True, autoincrement=True)
    supplier_id = Column(Integer, ForeignKey("app_users.id"), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("app_users.id"), nullable=False, index=True)
    supplier_warehouse_id = Column(Integer, ForeignKey("warehouses.id"), nullable=False)
    customer_warehouse_id = Column(Integer, ForeignKey("warehouses.id"), nullable=False)
    status = Column(String(STATUS_MAX_LENGTH), nullable=True)  # free text, never blank
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())


class AgreementMaterial(Base):
    """Material line item of an agreement. Replaced as a whole set on update."""

    __tablename__ = "agreement_materials"

    agreement_id = Column(Integer, ForeignKey("agreements.id"), primary_key=True)
    material_id = Column(Integer, ForeignKey("materials.id"), primary_key=True)
    amount = Column(Numeric(14, AMOUNT_SCALE, asdecimal=False), nullable=False)
    position = Column(Integer, nullable=False, default=0)  # order within the submitted list
