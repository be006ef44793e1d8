"""Tests for ordered-fallback detail page extraction."""

from listing_scraper.extract.detail import (
    DEFAULT_REGION_SELECTORS,
    DetailExtractor,
    FieldSpec,
    resolve_by_label,
    resolve_by_region,
    resolve_by_selector,
)
from listing_scraper.extract.dom import DomTree

from tests.fakes import page

PAGE_URL = "https://dir.example/company/acme"


class TestSelectorStrategy:
    """Dedicated class selectors come first."""

    def test_all_fields_from_default_selectors(self):
        html = page(
            '<h1 class="company-name"> Acme Corp </h1>'
            '<p class="company-address">1 Main St,\n Springfield</p>'
            '<a class="company-phone" href="tel:+15550100">+1 555 0100</a>'
            '<a class="company-website" href="https://acme.example/">acme.example</a>'
            '<span class="company-industry">Industrial Supplies</span>'
        )

        fields = DetailExtractor().extract(DomTree(html, PAGE_URL))

        assert fields == {
            "name": "Acme Corp",
            "address": "1 Main St, Springfield",
            "phone": "+1 555 0100",
            "website": "https://acme.example/",
            "industry": "Industrial Supplies",
        }

    def test_link_field_resolves_relative_href(self):
        html = page('<a class="company-website" href="/out/acme">Visit</a>')
        spec = FieldSpec(name="website", selectors=("a.company-website",), link=True)

        value = resolve_by_selector(DomTree(html, PAGE_URL), spec, PAGE_URL, ())

        assert value == "https://dir.example/out/acme"

    def test_override_selector_tried_first(self):
        html = page('<h1>Directory Listing</h1><div class="title">Acme Corp</div>')

        fields = DetailExtractor(overrides={"name": "div.title"}).extract(DomTree(html, PAGE_URL))

        assert fields["name"] == "Acme Corp"


class TestLabelStrategy:
    """Labelled values when no dedicated selector matches."""

    def test_value_in_next_sibling(self):
        html = page(
            '<dl><dt>Phone:</dt><dd>+1 555 0199</dd>'
            '<dt>Industry:</dt><dd>Logistics</dd></dl>'
            '<div class="row"><span>Address:</span><span>9 Harbor Rd</span></div>'
        )

        fields = DetailExtractor().extract(DomTree(html, PAGE_URL))

        assert fields["phone"] == "+1 555 0199"
        assert fields["industry"] == "Logistics"
        assert fields["address"] == "9 Harbor Rd"

    def test_value_after_label_in_same_element(self):
        html = page("<p>Industry: Food &amp; Beverage</p>")

        fields = DetailExtractor().extract(DomTree(html, PAGE_URL))

        assert fields["industry"] == "Food & Beverage"

    def test_website_label_prefers_absolute_anchor(self):
        html = page('<p>Website: <a href="https://acme.example">acme.example</a></p>')

        fields = DetailExtractor().extract(DomTree(html, PAGE_URL))

        assert fields["website"] == "https://acme.example"

    def test_value_after_inline_label(self):
        html = page(
            "<p><strong>Phone:</strong> 555-0100</p>"
            "<div><span>Address:</span> 1 Main St</div>"
            "<p><b>Industry:</b> Logistics</p>"
        )

        fields = DetailExtractor().extract(DomTree(html, PAGE_URL))

        assert fields["phone"] == "555-0100"
        assert fields["address"] == "1 Main St"
        assert fields["industry"] == "Logistics"

    def test_inline_label_stops_at_line_break(self):
        html = page("<div><b>Phone:</b> 555-0100<br><b>Address:</b> 1 Main St</div>")

        fields = DetailExtractor().extract(DomTree(html, PAGE_URL))

        assert fields["phone"] == "555-0100"
        assert fields["address"] == "1 Main St"

    def test_label_matching_is_case_insensitive(self):
        html = page("<li>TELEPHONE: 0800 123 456</li>")
        spec = FieldSpec(name="phone", labels=("telephone:",))

        assert resolve_by_label(DomTree(html, PAGE_URL), spec, PAGE_URL, ()) == "0800 123 456"


class TestRegionFallback:
    def test_first_external_link_in_sidebar(self):
        html = page(
            '<aside class="sidebar">'
            '<a href="/about">About this directory</a>'
            '<a href="https://dir.example/claim">Claim listing</a>'
            '<a href="https://www.acme-widgets.com/">Visit site</a>'
            '</aside>'
        )

        fields = DetailExtractor().extract(DomTree(html, PAGE_URL))

        assert fields["website"] == "https://www.acme-widgets.com/"

    def test_region_fallback_only_for_flagged_fields(self):
        html = page('<aside><a href="https://acme-widgets.com/">Visit</a></aside>')
        spec = FieldSpec(name="industry")

        assert resolve_by_region(DomTree(html, PAGE_URL), spec, PAGE_URL, DEFAULT_REGION_SELECTORS) is None

    def test_links_outside_regions_ignored(self):
        html = page('<footer><a href="https://partner.example/">Partner</a></footer>')

        fields = DetailExtractor().extract(DomTree(html, PAGE_URL))

        assert fields["website"] is None


def test_missing_name_heading_yields_none():
    html = page(
        '<div class="profile"><p>Address: 1 Main St</p><p>Phone: 555-0100</p></div>',
        title="Profile",
    )

    fields = DetailExtractor().extract(DomTree(html, PAGE_URL))

    assert fields["name"] is None
    assert fields["address"] == "1 Main St"
    assert fields["phone"] == "555-0100"
    assert fields["website"] is None
    assert fields["industry"] is None


def test_empty_page_resolves_nothing():
    fields = DetailExtractor().extract(DomTree("", PAGE_URL))

    assert set(fields) == {"name", "address", "phone", "website", "industry"}
    assert all(value is None for value in fields.values())
