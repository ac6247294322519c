"""Fee configuration CRUD and class-wide installment generation."""

import uuid
from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError

from schoolfees.api.v1.fee_configurations import service as configuration_service
from schoolfees.api.v1.fee_configurations.schemas import (
    ExamFee,
    FeeConfigurationCreate,
    FeeConfigurationUpdate,
    OtherFee,
)
from schoolfees.api.v1.fee_installments import service as installment_service
from schoolfees.api.v1.fee_installments.schemas import GenerateForStudentRequest
from schoolfees.core.enums import FeeFrequency, StudentStatus
from schoolfees.core.exceptions import DuplicateConfigurationError, InvalidStartDateError, NotFoundError
from schoolfees.core.models import FeeConfiguration

TODAY = date(2024, 3, 1)


def _payload(academic_year, school_class) -> FeeConfigurationCreate:
    return FeeConfigurationCreate(
        academic_year_id=academic_year.id,
        class_id=school_class.id,
        tuition_fee=Decimal("1500"),
        exam_fees=[ExamFee(name="First Term", amount=Decimal("500"))],
        other_fees=[OtherFee(name="Library Fee", amount=Decimal("300"), frequency=FeeFrequency.ANNUAL)],
    )


async def test_create_configuration(db_session, academic_year, school_class) -> None:
    cfg = await configuration_service.create_configuration(db_session, _payload(academic_year, school_class))
    assert cfg.tuition_fee == Decimal("1500")
    assert cfg.exam_fees[0].name == "First Term"
    assert cfg.exam_fees[0].amount == Decimal("500")
    assert cfg.other_fees[0].frequency == FeeFrequency.ANNUAL
    assert cfg.is_active is True


async def test_duplicate_configuration_is_rejected(db_session, academic_year, school_class) -> None:
    await configuration_service.create_configuration(db_session, _payload(academic_year, school_class))
    with pytest.raises(DuplicateConfigurationError):
        await configuration_service.create_configuration(db_session, _payload(academic_year, school_class))
    assert len(await configuration_service.list_configurations(db_session, class_id=school_class.id)) == 1


async def test_configuration_requires_existing_class(db_session, academic_year) -> None:
    payload = FeeConfigurationCreate(academic_year_id=academic_year.id, class_id=uuid.uuid4())
    with pytest.raises(NotFoundError):
        await configuration_service.create_configuration(db_session, payload)


async def test_other_fee_frequency_defaults_to_one_time() -> None:
    assert OtherFee(name="Uniform", amount=Decimal("800")).frequency == FeeFrequency.ONE_TIME


async def test_update_and_delete_configuration(db_session, academic_year, school_class) -> None:
    cfg = await configuration_service.create_configuration(db_session, _payload(academic_year, school_class))
    updated = await configuration_service.update_configuration(
        db_session, cfg.id, FeeConfigurationUpdate(tuition_fee=Decimal("1800"), exam_fees=[])
    )
    assert updated.tuition_fee == Decimal("1800")
    assert updated.exam_fees == []
    assert len(updated.other_fees) == 1

    await configuration_service.delete_configuration(db_session, cfg.id)
    with pytest.raises(NotFoundError):
        await configuration_service.get_configuration(db_session, cfg.id)


async def test_deleting_configuration_keeps_installments(
    db_session, student, academic_year, school_class, fee_configuration
) -> None:
    await configuration_service.generate_for_class(db_session, fee_configuration.id, today=TODAY)
    await configuration_service.delete_configuration(db_session, fee_configuration.id)
    assert len(await installment_service.list_installments(db_session, student_id=student.id)) == 13


async def test_generate_for_class_skips_students_with_fees(
    db_session, academic_year, school_class, fee_configuration, student_factory
) -> None:
    first = await student_factory(1)
    await student_factory(2)
    await student_factory(3)
    await student_factory(4, status=StudentStatus.INACTIVE.value)
    await installment_service.generate_for_student(
        db_session,
        GenerateForStudentRequest(student_id=first.id, academic_year_id=academic_year.id, class_id=school_class.id),
        today=TODAY,
    )

    result = await configuration_service.generate_for_class(db_session, fee_configuration.id, today=TODAY)
    assert result.students_count == 3
    assert result.processed_count == 2
    assert result.skipped_count == 1
    assert result.failed_count == 0
    assert result.installments_count == 26
    assert result.message == "Generated 26 fee installments for 2 students. Skipped 1 students (fees already exist)."

    # Running again only skips
    again = await configuration_service.generate_for_class(db_session, fee_configuration.id, today=TODAY)
    assert again.processed_count == 0
    assert again.skipped_count == 3
    assert again.installments_count == 0


async def test_generate_for_class_without_students(db_session, fee_configuration) -> None:
    result = await configuration_service.generate_for_class(db_session, fee_configuration.id, today=TODAY)
    assert result.students_count == 0
    assert result.message == "No active students found in this class"


async def test_generate_for_class_records_per_student_failures(
    db_session, academic_year, school_class, student_factory
) -> None:
    cfg = FeeConfiguration(
        academic_year_id=academic_year.id,
        class_id=school_class.id,
        tuition_fee=Decimal("1000"),
        exam_fees=[],
        other_fees=[{"name": "Bus", "amount": "200", "frequency": "weekly"}],
    )
    db_session.add(cfg)
    await db_session.commit()
    await student_factory(1)
    await student_factory(2)

    result = await configuration_service.generate_for_class(db_session, cfg.id, today=TODAY)
    assert result.students_count == 2
    assert result.processed_count == 0
    assert result.failed_count == 2
    assert "weekly" in result.errors[0].message
    assert await installment_service.list_installments(db_session, class_id=school_class.id) == []


async def test_generate_for_class_with_invalid_start_date(db_session, academic_year, fee_configuration, student) -> None:
    academic_year.start_date = None
    await db_session.commit()
    with pytest.raises(InvalidStartDateError):
        await configuration_service.generate_for_class(db_session, fee_configuration.id, today=TODAY)


async def test_generate_for_unknown_configuration(db_session) -> None:
    with pytest.raises(NotFoundError):
        await configuration_service.generate_for_class(db_session, uuid.uuid4())


def test_fee_amounts_are_limited_to_cents() -> None:
    with pytest.raises(ValidationError):
        ExamFee(name="Final", amount=Decimal("10.005"))
    with pytest.raises(ValidationError):
        OtherFee(name="Bus", amount=Decimal("0.001"))
    assert ExamFee(name="Final", amount=Decimal("10.50")).amount == Decimal("10.50")


async def test_generate_for_class_with_malformed_entry(
    db_session, academic_year, school_class, student_factory
) -> None:
    """A stored entry without a name fails each student; the batch still completes."""
    cfg = FeeConfiguration(
        academic_year_id=academic_year.id,
        class_id=school_class.id,
        tuition_fee=Decimal("1000"),
        exam_fees=[{"amount": "50"}],
        other_fees=[],
    )
    db_session.add(cfg)
    await db_session.commit()
    await student_factory(1)
    await student_factory(2)

    result = await configuration_service.generate_for_class(db_session, cfg.id, today=TODAY)
    assert result.students_count == 2
    assert result.processed_count == 0
    assert result.failed_count == 2
    assert result.errors[0].message == "Exam fee #1 has no name"
    assert await installment_service.list_installments(db_session, class_id=school_class.id) == []
