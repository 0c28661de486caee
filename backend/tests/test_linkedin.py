from research.linkedin import split_profile_title, validate_linkedin_url


def test_detects_company_person_and_event_urls():
    company = validate_linkedin_url("https://nl.linkedin.com/company/acme-events?trk=public")
    person = validate_linkedin_url("https://www.linkedin.com/in/jan-jansen-123/")
    event = validate_linkedin_url("https://www.linkedin.com/events/testival-2025")

    assert (company.detected_type, company.profile_id) == ("company", "acme-events")
    assert company.standardized_url == "https://www.linkedin.com/company/acme-events"
    assert person.detected_type == "person"
    assert person.standardized_url == "https://www.linkedin.com/in/jan-jansen-123"
    assert event.detected_type == "event"


def test_expected_type_mismatch():
    result = validate_linkedin_url("https://www.linkedin.com/in/jan-jansen", expected_type="company")

    assert result.is_valid is True
    assert result.matches_expected is False


def test_non_linkedin_url():
    result = validate_linkedin_url("https://testival.nl/contact", expected_type="person")

    assert result.is_valid is False
    assert result.matches_expected is False
    assert result.standardized_url is None


def test_split_profile_title():
    assert split_profile_title("Jan Jansen - Festival Director - Acme | LinkedIn") == ("Jan Jansen", "Festival Director")
    assert split_profile_title("Jan Jansen – Oprichter") == ("Jan Jansen", "Oprichter")
    assert split_profile_title("Klaas") == ("Klaas", None)
