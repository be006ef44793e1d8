"""Tests for list page anchor extraction."""

from listing_scraper.extract.dom import DomTree
from listing_scraper.extract.listing import ListExtractor

from tests.fakes import list_page, page

PAGE_URL = "https://dir.example/list?page=1"


def test_extracts_names_and_absolute_urls():
    html = list_page([
        ("  Acme \n  Corp ", "/company/acme"),
        ("Beta LLC", "https://dir.example/company/beta#top"),
    ])

    items = ListExtractor().extract(DomTree(html, PAGE_URL))

    assert [(i.name, i.url) for i in items] == [
        ("Acme Corp", "https://dir.example/company/acme"),
        ("Beta LLC", "https://dir.example/company/beta"),
    ]


def test_duplicate_hrefs_and_missing_href_skipped():
    html = page(
        '<div id="companyResults">'
        '<a class="companyName" href="/company/acme">Acme</a>'
        '<a class="companyName" href="/company/acme/">Acme again</a>'
        '<a class="companyName">No link</a>'
        '</div>'
    )

    items = ListExtractor().extract(DomTree(html, PAGE_URL))

    assert len(items) == 1
    assert items[0].name == "Acme"


def test_falls_back_to_second_alternative():
    html = page(
        '<div id="companyResults">'
        '<div><div class="col-md-6"><a href="/company/gamma">Gamma Inc</a></div></div>'
        '</div>'
    )

    items = ListExtractor().extract(DomTree(html, PAGE_URL))

    assert [i.url for i in items] == ["https://dir.example/company/gamma"]


def test_first_matching_alternative_wins():
    html = page(
        '<div id="companyResults">'
        '<a class="companyName" href="/company/acme">Acme</a>'
        '<div><div class="col-md-6"><a href="/company/other">Other</a></div></div>'
        '</div>'
    )

    items = ListExtractor().extract(DomTree(html, PAGE_URL))

    assert [i.name for i in items] == ["Acme"]


def test_no_matches_returns_empty_list():
    items = ListExtractor().extract(DomTree(page("<p>No results</p>"), PAGE_URL))

    assert items == []


def test_custom_selectors():
    html = page('<ul class="results"><li><a href="/c/1">One</a></li><li><a href="/c/2">Two</a></li></ul>')

    items = ListExtractor(["ul.results a"]).extract(DomTree(html, PAGE_URL))

    assert [i.name for i in items] == ["One", "Two"]
