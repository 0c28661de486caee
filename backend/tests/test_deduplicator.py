import hashlib

from scraper.deduplicator import Deduplicator
from scraper.models import EBLiveListing, FestivalListing


def _festival(**overrides):
    values = {"id": "123", "name": "Testival", "url": "https://www.festivalinfo.nl/festival/123/"}
    values.update(overrides)
    return FestivalListing(**values)


def _eblive(**overrides):
    values = {
        "id": "42",
        "name": "Testfest",
        "location": "Amsterdam",
        "dates": "Za 31 mei",
        "url": "https://www.eblive.nl/festivals/?festival_id=42",
    }
    values.update(overrides)
    return EBLiveListing(**values)


def test_hash_is_md5_of_joined_fields():
    deduplicator = Deduplicator()

    expected = hashlib.md5(b"festivalinfo.nl:123:Testival").hexdigest()
    assert deduplicator.generate_hash(_festival()) == expected


def test_process_separates_duplicates_and_sets_hash():
    deduplicator = Deduplicator()
    first, repeat, other = _festival(), _festival(), _festival(id="124")

    new, duplicates = deduplicator.process([first, repeat, other])

    assert new == [first, other]
    assert duplicates == [repeat]
    assert first.hash == deduplicator.generate_hash(first)
    assert repeat.hash is None
    assert deduplicator.unique_count == 2
    assert deduplicator.duplicates == 1


def test_eblive_key_includes_dates():
    deduplicator = Deduplicator(("source", "id", "name", "dates"))

    assert deduplicator.add(_eblive())
    assert deduplicator.add(_eblive(dates="Za 7 jun"))
    assert not deduplicator.add(_eblive())


def test_clear_starts_over():
    deduplicator = Deduplicator()
    deduplicator.add(_festival())
    deduplicator.add(_festival())

    deduplicator.clear()

    assert deduplicator.unique_count == 0
    assert deduplicator.duplicates == 0
    assert deduplicator.add(_festival())
