from unittest.mock import AsyncMock

import pytest

from app.core.exceptions import DatabaseError
from app.schemas.prospect import ErrorType, PersistedProspectMatch, RawProspectRow
from app.services.imports.validator import ProspectValidator

ORG_ID = "org-acme"


def raw(row_number, company_name="Acme Corp", contact_email="sarah@acme.com", contact_name="", website_url=""):
    return RawProspectRow(
        row_number=row_number,
        company_name=company_name,
        contact_email=contact_email,
        contact_name=contact_name,
        website_url=website_url,
    )


@pytest.fixture
def validator():
    return ProspectValidator()


@pytest.fixture
def prospect_lookup():
    lookup = AsyncMock()
    lookup.find_existing_by_emails = AsyncMock(return_value=[])
    return lookup


@pytest.mark.asyncio
async def test_valid_row_is_trimmed_and_normalized(validator):
    rows = [raw(1, company_name="  Acme Corp ", contact_email=" sarah@acme.com ", website_url="ACME.com/")]
    result = await validator.validate_rows(rows, ORG_ID)

    assert result.valid_count == 1
    assert result.invalid_count == 0
    prospect = result.valid_rows[0]
    assert prospect.company_name == "Acme Corp"
    assert prospect.contact_email == "sarah@acme.com"
    assert prospect.website_url == "https://acme.com"
    assert prospect.contact_name is None


@pytest.mark.asyncio
async def test_missing_company_and_bad_email_give_two_errors_on_one_row(validator):
    result = await validator.validate_rows([raw(1, company_name="", contact_email="bad-email")], ORG_ID)

    assert result.invalid_count == 1
    assert result.valid_count == 0
    assert result.total_error_count == 2
    assert [e.row_number for e in result.errors] == [1, 1]
    assert [e.error_type for e in result.errors] == [
        ErrorType.COMPANY_NAME_REQUIRED,
        ErrorType.INVALID_EMAIL_FORMAT,
    ]
    assert result.errors[1].original_value == "bad-email"


@pytest.mark.asyncio
async def test_same_normalized_email_is_flagged_as_duplicate(validator):
    rows = [
        {"company_name": "Acme Corp", "contact_email": "sarah@acme.com"},
        {"company_name": "Acme Corp", "contact_email": "SARAH@ACME.COM"},
    ]
    result = await validator.validate_rows(rows, ORG_ID)

    assert result.duplicate_count == 1
    assert result.total_error_count == 1
    error = result.errors[0]
    assert error.row_number == 2
    assert error.error_type == ErrorType.DUPLICATE_EMAIL
    assert error.message == "Duplicate email (SARAH@ACME.COM). First occurrence at row 1."
    assert error.metadata.first_occurrence_row == 1
    assert error.metadata.duplicate_of == "sarah@acme.com"
    assert [row.row_number for row in result.valid_rows] == [1]
    assert [row.row_number for row in result.invalid_rows] == [2]


@pytest.mark.asyncio
async def test_every_later_duplicate_points_at_the_first_occurrence(validator):
    rows = [
        raw(1, contact_email="hank@globex.com"),
        raw(2, contact_email="sarah@acme.com"),
        raw(3, contact_email=" Hank@Globex.com"),
        raw(4, contact_email="hank@globex.com"),
    ]
    result = await validator.validate_rows(rows, ORG_ID)

    duplicates = [e for e in result.errors if e.is_duplicate]
    assert [(e.row_number, e.metadata.first_occurrence_row) for e in duplicates] == [(3, 1), (4, 1)]
    assert all(e.metadata.first_occurrence_row < e.row_number for e in duplicates)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "company_name,error_type",
    [
        ("   ", ErrorType.COMPANY_NAME_REQUIRED),
        ("A" * 201, ErrorType.COMPANY_NAME_TOO_LONG),
        ("12345", ErrorType.COMPANY_NAME_INVALID),
        ("--- ---", ErrorType.COMPANY_NAME_INVALID),
    ],
)
async def test_company_name_rules(validator, company_name, error_type):
    result = await validator.validate_rows([raw(1, company_name=company_name)], ORG_ID)

    assert [e.error_type for e in result.errors] == [error_type]
    assert result.errors[0].field == "company_name"


@pytest.mark.asyncio
async def test_company_name_at_the_limit_is_accepted(validator):
    result = await validator.validate_rows([raw(1, company_name="A" * 200)], ORG_ID)

    assert result.valid_count == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "email",
    ["", "bad-email", "sarah @acme.com", "sarah@acme", "sarah@@acme.com", "@acme.com"],
)
async def test_invalid_emails_are_rejected(validator, email):
    result = await validator.validate_rows([raw(1, contact_email=email)], ORG_ID)

    assert [e.error_type for e in result.errors] == [ErrorType.INVALID_EMAIL_FORMAT]


@pytest.mark.asyncio
async def test_unicode_local_part_is_accepted(validator):
    result = await validator.validate_rows([raw(1, contact_email="josé@acme.com")], ORG_ID)

    assert result.valid_count == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("website_url", ["ftp://acme.com", "not a url", "localhost", "javascript:alert(1)"])
async def test_invalid_website_urls_are_rejected(validator, website_url):
    result = await validator.validate_rows([raw(1, website_url=website_url)], ORG_ID)

    assert [e.error_type for e in result.errors] == [ErrorType.INVALID_URL_FORMAT]
    assert result.errors[0].original_value == website_url


@pytest.mark.asyncio
async def test_contact_name_length_is_bounded(validator):
    result = await validator.validate_rows(
        [raw(1, contact_name="N" * 100), raw(2, contact_email="hank@globex.com", contact_name="N" * 101)],
        ORG_ID,
    )

    assert result.valid_count == 1
    assert [(e.row_number, e.error_type) for e in result.errors] == [(2, ErrorType.CONTACT_NAME_TOO_LONG)]


@pytest.mark.asyncio
async def test_limits_are_configurable():
    validator = ProspectValidator(company_name_max_length=5, contact_name_max_length=3)
    result = await validator.validate_rows([raw(1, company_name="Globex", contact_name="Hank")], ORG_ID)

    assert [e.error_type for e in result.errors] == [
        ErrorType.COMPANY_NAME_TOO_LONG,
        ErrorType.CONTACT_NAME_TOO_LONG,
    ]


@pytest.mark.asyncio
async def test_counts_and_ordering_over_a_mixed_batch(validator):
    rows = [
        raw(1),
        raw(2, company_name="", contact_email="bad-email"),
        raw(3, contact_email="hank@globex.com", website_url="ftp://globex.com"),
        raw(4, contact_email="SARAH@acme.com"),
        raw(5, contact_email="peter@initech.com"),
    ]
    result = await validator.validate_rows(rows, ORG_ID)

    assert result.valid_count + result.invalid_count == len(rows)
    assert result.valid_count == 2
    assert result.invalid_count == 3
    assert result.total_error_count == len(result.errors) == 4
    assert result.duplicate_count == 1
    assert [e.row_number for e in result.errors] == sorted(e.row_number for e in result.errors)
    error_rows = {e.row_number for e in result.errors}
    assert {row.row_number for row in result.invalid_rows} == error_rows
    assert {row.row_number for row in result.valid_rows}.isdisjoint(error_rows)


@pytest.mark.asyncio
async def test_empty_input(validator):
    result = await validator.validate_rows([], ORG_ID)

    assert (result.valid_count, result.invalid_count, result.total_error_count) == (0, 0, 0)


@pytest.mark.asyncio
async def test_persisted_duplicates_are_flagged_with_existing_record(prospect_lookup):
    prospect_lookup.find_existing_by_emails.return_value = [
        PersistedProspectMatch(
            id="prospect-existing-1",
            email="peter@initech.com",
            campaign_id="campaign-spring-outreach",
            campaign_name="Spring Outreach",
            status="New",
        )
    ]
    validator = ProspectValidator(prospect_lookup=prospect_lookup)
    rows = [raw(1, contact_email="Peter@Initech.com"), raw(2, contact_email="hank@globex.com")]

    result = await validator.validate_rows(rows, ORG_ID, "campaign-spring-outreach")

    prospect_lookup.find_existing_by_emails.assert_awaited_once_with(
        ["peter@initech.com", "hank@globex.com"], ORG_ID, "campaign-spring-outreach"
    )
    assert result.duplicate_count == 1
    error = result.errors[0]
    assert error.row_number == 1
    assert error.error_type == ErrorType.DUPLICATE_EMAIL
    assert error.metadata.existing_prospect_id == "prospect-existing-1"
    assert error.metadata.existing_campaign_id == "campaign-spring-outreach"
    assert error.metadata.existing_campaign_name == "Spring Outreach"
    assert "Spring Outreach" in error.message
    assert [row.row_number for row in result.valid_rows] == [2]


@pytest.mark.asyncio
async def test_upload_duplicate_precedes_persisted_duplicate_on_the_same_row(prospect_lookup):
    prospect_lookup.find_existing_by_emails.return_value = [
        PersistedProspectMatch(id="prospect-existing-1", email="sarah@acme.com", campaign_id="campaign-a")
    ]
    validator = ProspectValidator(prospect_lookup=prospect_lookup)

    result = await validator.validate_rows([raw(1), raw(2, contact_email="Sarah@Acme.com")], ORG_ID)

    assert [(e.row_number, e.metadata.first_occurrence_row) for e in result.errors] == [
        (1, None),
        (2, 1),
        (2, None),
    ]
    assert result.duplicate_count == 3


@pytest.mark.asyncio
async def test_check_persisted_false_skips_lookup(prospect_lookup):
    validator = ProspectValidator(prospect_lookup=prospect_lookup)

    result = await validator.validate_rows([raw(1)], ORG_ID, check_persisted=False)

    prospect_lookup.find_existing_by_emails.assert_not_awaited()
    assert result.valid_count == 1


@pytest.mark.asyncio
async def test_lookup_is_chunked(prospect_lookup):
    validator = ProspectValidator(prospect_lookup=prospect_lookup, lookup_chunk_size=2)
    rows = [raw(i, contact_email=f"person{i}@acme.com") for i in range(1, 6)]

    await validator.validate_rows(rows, ORG_ID)

    assert prospect_lookup.find_existing_by_emails.await_count == 3
    chunks = [call.args[0] for call in prospect_lookup.find_existing_by_emails.await_args_list]
    assert [len(chunk) for chunk in chunks] == [2, 2, 1]


@pytest.mark.asyncio
async def test_lookup_failure_propagates(prospect_lookup):
    prospect_lookup.find_existing_by_emails.side_effect = DatabaseError("Failed to find existing prospects")
    validator = ProspectValidator(prospect_lookup=prospect_lookup)

    with pytest.raises(DatabaseError):
        await validator.validate_rows([raw(1)], ORG_ID)
