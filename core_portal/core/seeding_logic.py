from sqlmodel import select
from loguru import logger

from core_portal.models.enums import FieldType, FormPartKey, UserRole
from core_portal.models.form import FormField, FormPart, FormSection, FormSubSection
from core_portal.models.service import Service, ServiceFormPart
from core_portal.services.auth_service import get_user_by_email, create_user
from core_portal.core.database import AsyncSessionLocal
from core_portal.core.config import settings

# ----------------------------------------------------------------
# 1. DEFINE STATIC DATA
# ----------------------------------------------------------------

SERVICES_DATA = [
    {
        "name": "Education Planning",
        "slug": "education-planning",
        "description": "Comprehensive education planning services to help you chart your academic journey",
        "short_description": "Plan your educational path with expert guidance",
        "learn_more_url": "https://www.kareerstudio.com/education-n-career-planning.html",
        "order": 1,
    },
    {
        "name": "Study Abroad",
        "slug": "study-abroad",
        "description": "Complete support for studying abroad including university selection, applications, and visa assistance",
        "short_description": "Your gateway to international education",
        "learn_more_url": "https://www.kareerstudio.com/study-abroad.html",
        "order": 2,
    },
    {
        "name": "Ivy League Preparation",
        "slug": "ivy-league",
        "description": "Specialized preparation for Ivy League and top-tier university admissions",
        "short_description": "Elite university admission preparation",
        "learn_more_url": None,
        "order": 3,
    },
    {
        "name": "IELTS Coaching",
        "slug": "ielts-coaching",
        "description": "Expert IELTS coaching to help you achieve your target band score",
        "short_description": "Achieve your target IELTS score",
        "learn_more_url": "https://www.kareerstudio.com/ielts.html",
        "order": 4,
    },
    {
        "name": "GRE Coaching",
        "slug": "gre-coaching",
        "description": "Comprehensive GRE preparation for graduate school admissions",
        "short_description": "Master the GRE with expert coaching",
        "learn_more_url": "https://www.kareerstudio.com/gre.html",
        "order": 5,
    },
]

FORM_PARTS_DATA = [
    {"key": FormPartKey.PROFILE, "title": "Profile", "description": "Complete your personal and academic profile", "order": 1, "is_required": True},
    {"key": FormPartKey.APPLICATION, "title": "Application", "description": "Apply to universities and programs", "order": 2, "is_required": True},
    {"key": FormPartKey.DOCUMENT, "title": "Documents", "description": "Upload required documents", "order": 3, "is_required": True},
    {"key": FormPartKey.PAYMENT, "title": "Payment", "description": "Complete payment process", "order": 4, "is_required": False},
]

GENDER_OPTIONS = [
    {"label": "Male", "value": "male"},
    {"label": "Female", "value": "female"},
    {"label": "Other", "value": "other"},
]

MARITAL_STATUS_OPTIONS = [
    {"label": "Single", "value": "single"},
    {"label": "Married", "value": "married"},
    {"label": "Divorced", "value": "divorced"},
    {"label": "Widowed", "value": "widowed"},
]

EDUCATION_LEVEL_OPTIONS = [
    {"label": "High School", "value": "high_school"},
    {"label": "Associate Degree", "value": "associate"},
    {"label": "Bachelor's Degree", "value": "bachelors"},
    {"label": "Master's Degree", "value": "masters"},
    {"label": "Doctorate", "value": "doctorate"},
]


def _address_fields(prefix: str, copy_trigger: str | None = None) -> list[dict]:
    """
    Address block for `mailing` / `permanent`. State depends on Country and
    City on State. With copy_trigger set, each field copies its mailing
    counterpart when the trigger checkbox is ticked.
    """
    def copy_rule(suffix):
        if not copy_trigger:
            return None
        return {"trigger": copy_trigger, "field": f"mailing{suffix}"}

    return [
        {"label": "Address Line 1", "key": f"{prefix}Address1", "type": FieldType.TEXT,
         "placeholder": "Street address", "required": True, "copy_from": copy_rule("Address1")},
        {"label": "Address Line 2", "key": f"{prefix}Address2", "type": FieldType.TEXT,
         "placeholder": "Apartment, suite, etc.", "copy_from": copy_rule("Address2")},
        {"label": "Country", "key": f"{prefix}Country", "type": FieldType.COUNTRY,
         "required": True, "default_value": "IN", "copy_from": copy_rule("Country")},
        {"label": "State/Province", "key": f"{prefix}State", "type": FieldType.STATE,
         "required": True, "depends_on": f"{prefix}Country", "copy_from": copy_rule("State")},
        {"label": "City", "key": f"{prefix}City", "type": FieldType.CITY,
         "required": True, "depends_on": f"{prefix}State", "copy_from": copy_rule("City")},
        {"label": "Postal Code", "key": f"{prefix}PostalCode", "type": FieldType.TEXT,
         "required": True, "copy_from": copy_rule("PostalCode")},
    ]


# Shared PROFILE sections (service_id NULL -> used by every service)
PROFILE_SECTIONS_DATA = [
    {
        "title": "Personal Details",
        "description": "Your personal information",
        "sub_sections": [
            {
                "title": "Personal Information",
                "fields": [
                    {"label": "First Name", "key": "firstName", "type": FieldType.TEXT, "required": True},
                    {"label": "Middle Name", "key": "middleName", "type": FieldType.TEXT},
                    {"label": "Last Name", "key": "lastName", "type": FieldType.TEXT, "required": True},
                    {"label": "Date of Birth", "key": "dob", "type": FieldType.DATE, "required": True},
                    {"label": "City of Birth", "key": "birthcity", "type": FieldType.TEXT},
                    {"label": "Gender", "key": "gender", "type": FieldType.SELECT,
                     "required": True, "options": GENDER_OPTIONS},
                    {"label": "Marital Status", "key": "maritalStatus", "type": FieldType.SELECT,
                     "options": MARITAL_STATUS_OPTIONS},
                    {"label": "Phone Number", "key": "phone", "type": FieldType.PHONE,
                     "placeholder": "+1 (555) 000-0000", "required": True},
                ],
            },
            {
                "title": "Mailing Address",
                "fields": _address_fields("mailing"),
            },
            {
                "title": "Permanent Address",
                "fields": [
                    {"label": "Same as Mailing Address", "key": "sameAsMailingAddress", "type": FieldType.CHECKBOX},
                    *_address_fields("permanent", copy_trigger="sameAsMailingAddress"),
                ],
            },
            {
                "title": "Passport Information",
                "fields": [
                    {"label": "Passport Number", "key": "passportNumber", "type": FieldType.TEXT},
                    {"label": "Issue Date", "key": "passportIssueDate", "type": FieldType.DATE},
                    {"label": "Expiry Date", "key": "passportExpiryDate", "type": FieldType.DATE},
                    {"label": "Place of Issue", "key": "passportPlaceOfIssue", "type": FieldType.TEXT},
                ],
            },
        ],
    },
    {
        "title": "Academic Qualification",
        "description": "Your educational background",
        "sub_sections": [
            {
                "title": "Education Summary",
                "is_repeatable": True,
                "max_repeat": 10,
                "fields": [
                    {"label": "Level of Education", "key": "educationLevel", "type": FieldType.SELECT,
                     "required": True, "options": EDUCATION_LEVEL_OPTIONS},
                    {"label": "Institution Name", "key": "institutionName", "type": FieldType.TEXT, "required": True},
                    {"label": "Country", "key": "institutionCountry", "type": FieldType.COUNTRY, "required": True},
                    {"label": "Field of Study", "key": "fieldOfStudy", "type": FieldType.TEXT},
                    {"label": "Start Date", "key": "startDate", "type": FieldType.DATE},
                    {"label": "End Date", "key": "endDate", "type": FieldType.DATE},
                    {"label": "GPA / Percentage", "key": "gpa", "type": FieldType.NUMBER,
                     "validation": {"min": 0, "max": 100}},
                    {"label": "Currently Studying", "key": "currentlyStudying", "type": FieldType.CHECKBOX},
                ],
            },
        ],
    },
    {
        "title": "Work Experience",
        "description": "Your professional experience",
        "sub_sections": [
            {
                "title": "Work Experience/Internship",
                "is_repeatable": True,
                "max_repeat": 10,
                "fields": [
                    {"label": "Company Name", "key": "companyName", "type": FieldType.TEXT},
                    {"label": "Job Title", "key": "jobTitle", "type": FieldType.TEXT},
                    {"label": "Country", "key": "workCountry", "type": FieldType.COUNTRY},
                    {"label": "Currently Working", "key": "currentlyWorking", "type": FieldType.CHECKBOX},
                    {"label": "Start Date", "key": "workStartDate", "type": FieldType.DATE},
                    {"label": "End Date", "key": "workEndDate", "type": FieldType.DATE},
                    {"label": "Reporting Manager Email", "key": "reportingToEmail", "type": FieldType.EMAIL},
                    {"label": "Job Description", "key": "jobDescription", "type": FieldType.TEXTAREA},
                ],
            },
        ],
    },
]


# ----------------------------------------------------------------
# 2. SEEDING FUNCTIONS
# ----------------------------------------------------------------

async def seed_all():
    """Master function to run all seeding logic."""
    async with AsyncSessionLocal() as session:
        try:
            await seed_services(session)
            await seed_form_parts(session)
            await link_parts_to_services(session)
            await seed_profile_sections(session)
            await seed_super_admin(session)

            await session.commit()
            logger.success("Seeding complete.")
        except Exception as e:
            logger.error(f"Seeding failed: {e}")
            await session.rollback()


async def seed_services(session):
    for s in SERVICES_DATA:
        result = await session.execute(select(Service).where(Service.slug == s["slug"]))
        if not result.scalar_one_or_none():
            logger.info(f"Creating service: {s['name']}")
            session.add(Service(**s))
    await session.flush()


async def seed_form_parts(session):
    for p in FORM_PARTS_DATA:
        result = await session.execute(select(FormPart).where(FormPart.key == p["key"]))
        if not result.scalar_one_or_none():
            logger.info(f"Creating form part: {p['title']}")
            session.add(FormPart(
                key=p["key"], title=p["title"], description=p["description"], order=p["order"]
            ))
    await session.flush()


async def link_parts_to_services(session):
    """Every service uses every part; only PAYMENT is optional."""
    services = (await session.execute(select(Service))).scalars().all()
    parts = {p.key: p for p in (await session.execute(select(FormPart))).scalars().all()}

    for service in services:
        for p in FORM_PARTS_DATA:
            part = parts.get(p["key"])
            if not part:
                continue
            existing = await session.execute(
                select(ServiceFormPart).where(
                    ServiceFormPart.service_id == service.id,
                    ServiceFormPart.part_id == part.id,
                )
            )
            if not existing.scalar_one_or_none():
                session.add(ServiceFormPart(
                    service_id=service.id,
                    part_id=part.id,
                    order=p["order"],
                    is_required=p["is_required"],
                ))
    await session.flush()


async def seed_profile_sections(session):
    profile = (await session.execute(
        select(FormPart).where(FormPart.key == FormPartKey.PROFILE)
    )).scalar_one_or_none()
    if not profile:
        logger.warning("PROFILE part missing. Skipping form seeding.")
        return

    for section_order, section_data in enumerate(PROFILE_SECTIONS_DATA, start=1):
        existing = await session.execute(
            select(FormSection).where(
                FormSection.part_id == profile.id,
                FormSection.title == section_data["title"],
                FormSection.service_id == None,  # noqa: E711
            )
        )
        if existing.scalar_one_or_none():
            continue

        logger.info(f"Creating section: {section_data['title']}")
        section = FormSection(
            part_id=profile.id,
            title=section_data["title"],
            description=section_data.get("description"),
            order=section_order,
        )
        session.add(section)
        await session.flush()

        for sub_order, sub_data in enumerate(section_data["sub_sections"], start=1):
            sub_section = FormSubSection(
                section_id=section.id,
                title=sub_data["title"],
                order=sub_order,
                is_repeatable=sub_data.get("is_repeatable", False),
                max_repeat=sub_data.get("max_repeat"),
            )
            session.add(sub_section)
            await session.flush()

            for field_order, f in enumerate(sub_data["fields"], start=1):
                session.add(FormField(
                    sub_section_id=sub_section.id,
                    label=f["label"],
                    key=f["key"],
                    type=f["type"],
                    placeholder=f.get("placeholder"),
                    required=f.get("required", False),
                    order=field_order,
                    validation=f.get("validation"),
                    options=f.get("options"),
                    default_value=f.get("default_value"),
                    depends_on=f.get("depends_on"),
                    copy_from=f.get("copy_from"),
                ))
    await session.flush()


async def seed_super_admin(session):
    if settings.SUPER_ADMIN_EMAIL and settings.SUPER_ADMIN_PASSWORD:
        existing = await get_user_by_email(session, settings.SUPER_ADMIN_EMAIL)
        if not existing:
            await create_user(
                session=session,
                name=settings.SUPER_ADMIN_NAME or "Super Admin",
                email=settings.SUPER_ADMIN_EMAIL,
                password=settings.SUPER_ADMIN_PASSWORD,
                role=UserRole.SUPER_ADMIN,
                commit=False,
            )
            logger.success("Super admin created.")
