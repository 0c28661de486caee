from scraper.pagination import discover_total_pages


def _links(numbers):
    return "".join(f'<a href="/festivals/?page={n}">{n}</a>' for n in numbers)


def test_last_page_link_and_max_link_agree():
    html = f'<div class="pagination">{_links(range(1, 6))}<a href="/festivals/?page=57">Laatste</a></div>'

    assert discover_total_pages(html, min_pages=40) == 57


def test_pagination_container_without_last_link():
    html = f"<nav>{_links([1, 2, 3, 63])}</nav>"

    assert discover_total_pages(html, min_pages=40) == 63


def test_minimum_used_when_detection_finds_less():
    html = f'<div class="pager">{_links([1, 2, 3])}</div>'

    assert discover_total_pages(html, min_pages=40) == 40
    assert discover_total_pages(html, min_pages=2) == 3


def test_no_links_falls_back_to_minimum():
    assert discover_total_pages("<html><body></body></html>", min_pages=40) == 40
    assert discover_total_pages(None, min_pages=40) == 40


def test_single_page_result_is_forced_up():
    assert discover_total_pages("<html><body></body></html>", min_pages=1) == 40
