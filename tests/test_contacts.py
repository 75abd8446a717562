# @file purpose: Contact extraction and validation.
import pytest

from lead_finder.io.static_driver import StaticPage, StaticPageDriver
from lead_finder.text.contacts import EMAIL_DENYLIST, PHONE_DENYLIST, ContactExtractor, digits_of


@pytest.fixture
def extractor() -> ContactExtractor:
    return ContactExtractor()


def test_phone_denylist_drops_repeated_digits(extractor: ContactExtractor) -> None:
    phones = extractor.extract_phones("call 555-123-4567 or 111-111-1111")
    digits = [digits_of(p) for p in phones]
    assert "5551234567" in digits
    assert "1111111111" not in digits


def test_denylisted_email_domain_is_dropped(extractor: ContactExtractor) -> None:
    found = extractor.extract_all("We are hiring a backend engineer, contact me at jobs@example.com")
    assert found.emails == []
    assert not found.has_contacts


def test_extract_all_is_deduplicated_and_clean(extractor: ContactExtractor) -> None:
    text = (
        "Reach jane.doe@acme.io or JANE.DOE@acme.io, again jane.doe@acme.io. "
        "noreply@acme.io will not answer. Phone 415-555-0199, 415-555-0199, 0000000000"
    )
    found = extractor.extract_all(text)
    assert len(found.emails) == len(set(found.emails))
    assert len(found.phones) == len(set(found.phones))
    assert "jane.doe@acme.io" in found.emails
    assert not any(p in e.lower() for e in found.emails for p in EMAIL_DENYLIST)
    assert not any(digits_of(p) in PHONE_DENYLIST for p in found.phones)
    assert "415-555-0199" in found.phones


@pytest.mark.parametrize(
    "email",
    ["a.b@corp.io", "sales@my-company.co.uk", "x1@abc.de"],
)
def test_valid_emails(email: str) -> None:
    assert ContactExtractor.is_valid_email(email)


@pytest.mark.parametrize(
    "email",
    ["no-at-sign.com", "two@at@signs.com", "", "a@b.c"],
)
def test_invalid_emails(email: str) -> None:
    assert not ContactExtractor.is_valid_email(email)


def test_phone_validation() -> None:
    assert ContactExtractor.is_valid_phone("+1 (415) 555-0199")
    assert not ContactExtractor.is_valid_phone("555-0199")
    assert not ContactExtractor.is_valid_phone("2222222222")
    assert ContactExtractor.clean_phone("  +44  20 7946   0958 ") == "+44 20 7946 0958"


def test_empty_text(extractor: ContactExtractor) -> None:
    assert extractor.extract_emails(None) == []
    assert extractor.extract_phones("") == []


@pytest.mark.asyncio
async def test_extract_from_element_reads_rendered_text(extractor: ContactExtractor) -> None:
    driver = StaticPageDriver()
    page = StaticPage.from_html(
        "<div id='c'><span>ping</span> <b>ops@northwind.dev</b><script>x='leak@evil.dev'</script></div>"
    )
    el = await driver.query(page, "#c")
    found = await extractor.extract_from_element(driver, page, el)
    assert found.emails == ["ops@northwind.dev"]
    assert (await extractor.extract_from_element(driver, page, None)).emails == []
