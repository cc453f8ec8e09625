"""Unit tests for the reference validator (existence and shape checks)."""

from decimal import Decimal

import pytest

from supply_platform.domain.errors import NotFoundError, ValidationError
from supply_platform.domain.schemas import AgreementUpdate, MaterialLine
from supply_platform.services.reference_validator import (
    ReferenceValidator,
    as_field_dict,
    check_exists,
    is_positive_int,
    material_exists,
    require_positive_id,
    user_exists,
    validate_status,
    warehouse_exists,
)


@pytest.fixture
def validator():
    return ReferenceValidator()


# ---------------------------------------------------------------------------
# Pure field checks
# ---------------------------------------------------------------------------


class TestPositiveId:
    @pytest.mark.parametrize("value", [1, 7, 10_000])
    def test_accepts_positive_ints(self, value):
        assert is_positive_int(value)
        assert require_positive_id("supplier_id", value, "create") == value

    @pytest.mark.parametrize("value", [0, -3, 1.5, "3", True, [1]])
    def test_rejects_non_positive_or_non_int(self, value):
        with pytest.raises(ValidationError) as exc_info:
            require_positive_id("supplier_id", value, "create")
        assert exc_info.value.field == "supplier_id"
        assert exc_info.value.value == value

    def test_largest_storable_id_accepted(self):
        assert is_positive_int(2**63 - 1)

    @pytest.mark.parametrize("value", [2**63, 2**70, 99999999999999999999])
    def test_ids_beyond_64_bits_rejected(self, value):
        assert not is_positive_int(value)
        with pytest.raises(ValidationError) as exc_info:
            require_positive_id("id", value, "findById")
        assert exc_info.value.field == "id"

    def test_missing_value_is_required_error(self):
        with pytest.raises(ValidationError, match="customer_id is required"):
            require_positive_id("customer_id", None, "create")


class TestStatus:
    def test_none_passes_through(self):
        assert validate_status(None, "create") is None

    def test_text_is_kept_verbatim(self):
        assert validate_status(" active ", "create") == " active "

    @pytest.mark.parametrize("value", ["", "   ", "\t\n", 5])
    def test_blank_or_non_text_rejected(self, value):
        with pytest.raises(ValidationError) as exc_info:
            validate_status(value, "update")
        assert exc_info.value.field == "status"


    def test_status_at_column_length_accepted(self):
        assert validate_status("a" * 100, "create") == "a" * 100

    def test_status_longer_than_column_rejected(self):
        with pytest.raises(ValidationError, match="at most 100 characters") as exc_info:
            validate_status("a" * 101, "update")
        assert exc_info.value.field == "status"


class TestAsFieldDict:
    def test_mapping_is_copied(self):
        source = {"status": "active"}
        result = as_field_dict(source, "update", "bad")
        assert result == source
        assert result is not source

    def test_model_contributes_only_set_fields(self):
        model = AgreementUpdate(status="active")
        assert as_field_dict(model, "update", "bad") == {"status": "active"}

    @pytest.mark.parametrize("value", ["text", 12, ["status"]])
    def test_non_object_rejected(self, value):
        with pytest.raises(ValidationError, match="must be an object"):
            as_field_dict(value, "update", "Update data must be an object")


# ---------------------------------------------------------------------------
# Existence checks
# ---------------------------------------------------------------------------


class TestExistenceChecks:
    async def test_collaborator_contracts(self, db_session, refs):
        assert await user_exists(db_session, refs.supplier)
        assert await warehouse_exists(db_session, refs.customer_warehouse)
        assert await material_exists(db_session, refs.copper)

        assert not await user_exists(db_session, 9999)
        assert not await warehouse_exists(db_session, 9999)
        assert not await material_exists(db_session, 9999)

    async def test_unknown_collection_is_a_programming_error(self, db_session):
        with pytest.raises(ValueError):
            await check_exists(db_session, "invoices", 1)


class TestValidateReferences:
    async def test_all_required_fields_pass(self, db_session, refs, create_data, validator):
        await validator.validate_references(db_session, create_data(), "create", required=True)

    async def test_missing_required_field(self, db_session, refs, create_data, validator):
        data = create_data()
        del data["supplier_warehouse_id"]
        with pytest.raises(ValidationError) as exc_info:
            await validator.validate_references(db_session, data, "create", required=True)
        assert exc_info.value.field == "supplier_warehouse_id"

    async def test_fixed_order_reports_supplier_first(self, db_session, refs, create_data, validator):
        data = create_data(supplier_id=9001, customer_id=9002)
        with pytest.raises(NotFoundError) as exc_info:
            await validator.validate_references(db_session, data, "create", required=True)
        assert exc_info.value.entity == "Supplier"
        assert exc_info.value.entity_id == 9001

    @pytest.mark.parametrize(
        "field,entity",
        [
            ("customer_id", "Customer"),
            ("supplier_warehouse_id", "Supplier warehouse"),
            ("customer_warehouse_id", "Customer warehouse"),
        ],
    )
    async def test_each_field_names_its_entity(self, db_session, refs, create_data, validator, field, entity):
        with pytest.raises(NotFoundError) as exc_info:
            await validator.validate_references(
                db_session, create_data(**{field: 4242}), "create", required=True
            )
        assert exc_info.value.entity == entity
        assert "4242" in exc_info.value.message

    async def test_positivity_checked_before_existence(self, db_session, refs, create_data, validator):
        with pytest.raises(ValidationError) as exc_info:
            await validator.validate_references(
                db_session, create_data(customer_id=-1), "create", required=True
            )
        assert exc_info.value.field == "customer_id"

    async def test_optional_mode_skips_absent_fields(self, db_session, refs, validator):
        await validator.validate_references(
            db_session, {"customer_id": refs.customer}, "update", required=False
        )
        await validator.validate_references(db_session, {}, "update", required=False)

    async def test_same_user_on_both_sides_is_allowed(self, db_session, refs, create_data, validator):
        data = create_data(
            customer_id=refs.supplier,
            customer_warehouse_id=refs.supplier_warehouse,
        )
        await validator.validate_references(db_session, data, "create", required=True)


# ---------------------------------------------------------------------------
# Material lines
# ---------------------------------------------------------------------------


class TestMaterialLines:
    @pytest.mark.parametrize("value", [{"material_id": 1, "amount": 2}, "steel", 3])
    def test_materials_must_be_a_list(self, validator, value):
        with pytest.raises(ValidationError) as exc_info:
            validator.validate_materials_list(value, "create")
        assert exc_info.value.field == "materials"

    def test_empty_list_is_valid(self, validator):
        assert validator.validate_materials_list([], "create") == []

    async def test_valid_line_from_dict_and_model(self, db_session, refs, validator):
        assert await validator.validate_material_line(
            db_session, {"material_id": refs.steel, "amount": 100}, "create"
        ) == (refs.steel, 100.0)
        assert await validator.validate_material_line(
            db_session, MaterialLine(material_id=refs.copper, amount=2.5), "create"
        ) == (refs.copper, 2.5)

    async def test_decimal_amount_accepted(self, db_session, refs, validator):
        _, amount = await validator.validate_material_line(
            db_session, {"material_id": refs.steel, "amount": Decimal("12.5")}, "create"
        )
        assert amount == 12.5

    async def test_missing_material(self, db_session, refs, validator):
        with pytest.raises(NotFoundError) as exc_info:
            await validator.validate_material_line(
                db_session, {"material_id": 777, "amount": 1}, "create"
            )
        assert exc_info.value.entity == "Material"

    @pytest.mark.parametrize("amount", [0, -5, None, "10", True])
    async def test_bad_amount(self, db_session, refs, validator, amount):
        with pytest.raises(ValidationError) as exc_info:
            await validator.validate_material_line(
                db_session, {"material_id": refs.steel, "amount": amount}, "create"
            )
        assert exc_info.value.field == "amount"

    @pytest.mark.parametrize("amount", [0.0001, 2.5005, Decimal("1.0001")])
    async def test_amount_finer_than_storage_scale(self, db_session, refs, validator, amount):
        with pytest.raises(ValidationError, match="decimal places") as exc_info:
            await validator.validate_material_line(
                db_session, {"material_id": refs.steel, "amount": amount}, "create"
            )
        assert exc_info.value.field == "amount"

    @pytest.mark.parametrize("amount", [0.001, 1.125, Decimal("7.250"), 10**9])
    async def test_amount_at_storage_scale(self, db_session, refs, validator, amount):
        _, stored = await validator.validate_material_line(
            db_session, {"material_id": refs.steel, "amount": amount}, "create"
        )
        assert stored == float(amount)

    async def test_material_id_beyond_64_bits(self, db_session, refs, validator):
        with pytest.raises(ValidationError) as exc_info:
            await validator.validate_material_line(
                db_session, {"material_id": 2**64, "amount": 1}, "create"
            )
        assert exc_info.value.field == "material_id"

    async def test_bad_material_id(self, db_session, refs, validator):
        with pytest.raises(ValidationError) as exc_info:
            await validator.validate_material_line(
                db_session, {"material_id": 0, "amount": 3}, "create"
            )
        assert exc_info.value.field == "material_id"

    async def test_non_object_line(self, db_session, refs, validator):
        with pytest.raises(ValidationError):
            await validator.validate_material_line(db_session, 5, "create")

    async def test_repeated_material_rejected(self, db_session, refs, validator):
        seen = set()
        await validator.validate_material_line(
            db_session, {"material_id": refs.steel, "amount": 1}, "create", seen
        )
        with pytest.raises(ValidationError, match="more than once"):
            await validator.validate_material_line(
                db_session, {"material_id": refs.steel, "amount": 2}, "create", seen
            )
