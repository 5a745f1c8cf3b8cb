from uuid import uuid4

import pytest

from core_portal.core.exceptions import ValidationFailedError
from core_portal.core.seeding_logic import _address_fields
from core_portal.models.enums import FieldType, FormPartKey
from core_portal.schemas.form import FormFieldRead, FormPartRead, FormSectionRead, FormSubSectionRead
from core_portal.services import form_aggregator


def _sub(title, fields, repeatable=False, max_repeat=None):
    return FormSubSectionRead(
        id=uuid4(),
        title=title,
        is_repeatable=repeatable,
        max_repeat=max_repeat,
        fields=[FormFieldRead(id=uuid4(), order=i, **f) for i, f in enumerate(fields)],
    )


@pytest.fixture
def address_section():
    mailing = _sub("Mailing Address", _address_fields("mailing"))
    permanent = _sub("Permanent Address", [
        {"label": "Same as Mailing Address", "key": "sameAsMailingAddress", "type": FieldType.CHECKBOX},
        *_address_fields("permanent", copy_trigger="sameAsMailingAddress"),
    ])
    education = _sub("Education Summary", [
        {"label": "Institution Name", "key": "institutionName", "type": FieldType.TEXT, "required": True},
        {"label": "Country", "key": "institutionCountry", "type": FieldType.COUNTRY},
    ], repeatable=True, max_repeat=2)
    section = FormSectionRead(id=uuid4(), title="Personal Details", sub_sections=[mailing, permanent, education])
    return section, mailing, permanent, education


MAILING = {
    "mailingAddress1": "12 MG Road",
    "mailingAddress2": "Flat 4",
    "mailingCountry": "IN",
    "mailingState": "KA",
    "mailingCity": "Bengaluru",
    "mailingPostalCode": "560001",
}


# ------------------------------------------------------------------
# depends_on cascade
# ------------------------------------------------------------------
def test_country_change_resets_state_and_city(address_section):
    section, mailing, _, _ = address_section
    answers = {str(mailing.id): [dict(MAILING)]}

    updated = form_aggregator.apply_field_change(section, answers, str(mailing.id), 0, "mailingCountry", "US")

    instance = updated[str(mailing.id)][0]
    assert instance["mailingCountry"] == "US"
    assert instance["mailingState"] == ""
    assert instance["mailingCity"] == ""
    assert instance["mailingPostalCode"] == "560001"
    # input is left untouched
    assert answers[str(mailing.id)][0]["mailingState"] == "KA"


def test_state_change_resets_only_city(address_section):
    section, mailing, _, _ = address_section
    answers = {str(mailing.id): [dict(MAILING)]}

    updated = form_aggregator.apply_field_change(section, answers, str(mailing.id), 0, "mailingState", "TN")

    instance = updated[str(mailing.id)][0]
    assert instance["mailingCountry"] == "IN"
    assert instance["mailingState"] == "TN"
    assert instance["mailingCity"] == ""


def test_setting_same_value_keeps_dependents(address_section):
    section, mailing, _, _ = address_section
    answers = {str(mailing.id): [dict(MAILING)]}

    updated = form_aggregator.apply_field_change(section, answers, str(mailing.id), 0, "mailingCountry", "IN")

    assert updated[str(mailing.id)][0] == MAILING


def test_unknown_field_is_rejected(address_section):
    section, mailing, _, _ = address_section
    with pytest.raises(ValidationFailedError):
        form_aggregator.apply_field_change(section, {}, str(mailing.id), 0, "favouriteColour", "blue")


# ------------------------------------------------------------------
# copy_from
# ------------------------------------------------------------------
def test_same_as_mailing_copies_exactly_six_fields(address_section):
    section, mailing, permanent, _ = address_section
    answers = {str(mailing.id): [dict(MAILING)], str(permanent.id): [{}]}

    updated = form_aggregator.apply_field_change(
        section, answers, str(permanent.id), 0, "sameAsMailingAddress", True
    )

    assert updated[str(permanent.id)][0] == {
        "sameAsMailingAddress": True,
        "permanentAddress1": "12 MG Road",
        "permanentAddress2": "Flat 4",
        "permanentCountry": "IN",
        "permanentState": "KA",
        "permanentCity": "Bengaluru",
        "permanentPostalCode": "560001",
    }
    assert updated[str(mailing.id)][0] == MAILING


def test_unticking_same_as_mailing_copies_nothing(address_section):
    section, mailing, permanent, _ = address_section
    answers = {str(mailing.id): [dict(MAILING)], str(permanent.id): [{"permanentCity": "Pune"}]}

    updated = form_aggregator.apply_field_change(
        section, answers, str(permanent.id), 0, "sameAsMailingAddress", False
    )

    assert updated[str(permanent.id)][0] == {"permanentCity": "Pune", "sameAsMailingAddress": False}


# ------------------------------------------------------------------
# instances
# ------------------------------------------------------------------
def test_non_repeatable_is_truncated_to_one_instance(address_section):
    section, mailing, _, _ = address_section
    part = FormPartRead(id=uuid4(), key=FormPartKey.PROFILE, title="Profile", sections=[section])
    saved = {str(section.id): {str(mailing.id): [dict(MAILING), {"mailingCity": "Delhi"}]}}

    merged = form_aggregator.merge_part_answers(part, saved)

    assert merged[str(section.id)][str(mailing.id)] == [MAILING]


def test_merge_fills_every_sub_section_with_defaults(address_section):
    section, mailing, permanent, education = address_section
    part = FormPartRead(id=uuid4(), key=FormPartKey.PROFILE, title="Profile", sections=[section])

    merged = form_aggregator.merge_part_answers(part, None)

    section_answers = merged[str(section.id)]
    assert section_answers[str(mailing.id)] == [{"mailingCountry": "IN"}]
    assert section_answers[str(permanent.id)] == [{"permanentCountry": "IN"}]
    assert section_answers[str(education.id)] == [{}]


def test_merge_prefills_profile_phone():
    phone_sub = _sub("Personal Information", [
        {"label": "First Name", "key": "firstName", "type": FieldType.TEXT},
        {"label": "Phone Number", "key": "phone", "type": FieldType.PHONE},
    ])
    section = FormSectionRead(id=uuid4(), title="Personal Details", sub_sections=[phone_sub])
    part = FormPartRead(id=uuid4(), key=FormPartKey.PROFILE, title="Profile", sections=[section])

    merged = form_aggregator.merge_part_answers(part, {}, student_phone="9000000001")
    assert merged[str(section.id)][str(phone_sub.id)] == [{"phone": "9000000001"}]

    saved = {str(section.id): {str(phone_sub.id): [{"phone": "9111111111"}]}}
    merged = form_aggregator.merge_part_answers(part, saved, student_phone="9000000001")
    assert merged[str(section.id)][str(phone_sub.id)] == [{"phone": "9111111111"}]


def test_add_instance_respects_limits(address_section):
    _, mailing, _, education = address_section

    with pytest.raises(ValidationFailedError):
        form_aggregator.add_instance(mailing, [dict(MAILING)])

    two = form_aggregator.add_instance(education, [{"institutionName": "IIT"}])
    assert two == [{"institutionName": "IIT"}, {}]

    with pytest.raises(ValidationFailedError):
        form_aggregator.add_instance(education, two)


def test_remove_instance_keeps_at_least_one(address_section):
    _, _, _, education = address_section

    remaining = form_aggregator.remove_instance(education, [{"institutionName": "A"}, {"institutionName": "B"}], 0)
    assert remaining == [{"institutionName": "B"}]

    with pytest.raises(ValidationFailedError):
        form_aggregator.remove_instance(education, remaining, 0)


# ------------------------------------------------------------------
# validation
# ------------------------------------------------------------------
def test_validate_rejects_extra_instances_and_unknown_ids(address_section):
    section, mailing, _, _ = address_section
    part = FormPartRead(id=uuid4(), key=FormPartKey.PROFILE, title="Profile", sections=[section])

    with pytest.raises(ValidationFailedError):
        form_aggregator.validate_part_answers(part, {str(section.id): {str(mailing.id): [{}, {}]}})

    with pytest.raises(ValidationFailedError):
        form_aggregator.validate_part_answers(part, {str(uuid4()): {}})

    form_aggregator.validate_part_answers(part, {str(section.id): {str(mailing.id): [dict(MAILING)]}})


def test_completed_save_requires_required_fields(address_section):
    section, mailing, _, _ = address_section
    part = FormPartRead(id=uuid4(), key=FormPartKey.PROFILE, title="Profile", sections=[section])

    missing = form_aggregator.missing_required_fields(part, {str(section.id): {str(mailing.id): [dict(MAILING)]}})
    assert "Address Line 1" in missing  # permanent address still empty
    assert "Institution Name" in missing

    with pytest.raises(ValidationFailedError):
        form_aggregator.validate_part_answers(part, {}, require_complete=True)


def test_extract_phone():
    answers = {"s1": {"sub1": [{"firstName": "Asha"}], "sub2": [{"phone": " 9876543210 "}]}}
    assert form_aggregator.extract_phone(answers) == "9876543210"
    assert form_aggregator.extract_phone({}) is None


def test_field_change_truncates_non_repeatable_instances(address_section):
    section, mailing, _, _ = address_section
    answers = {str(mailing.id): [dict(MAILING), {"mailingCity": "Delhi"}]}

    updated = form_aggregator.apply_field_change(section, answers, str(mailing.id), 0, "mailingCity", "Mysuru")

    assert len(updated[str(mailing.id)]) == 1
    assert updated[str(mailing.id)][0]["mailingCity"] == "Mysuru"

    with pytest.raises(ValidationFailedError):
        form_aggregator.apply_field_change(section, answers, str(mailing.id), 1, "mailingCity", "Mysuru")
