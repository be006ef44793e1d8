"""Tests for block page detection."""

import pytest

from listing_scraper.crawl.block_detector import BlockDetector


@pytest.mark.parametrize("text", [
    "<h1>Access   Denied</h1>",
    "403 FORBIDDEN",
    "Your request has been Blocked",
    "Please verify you are a human",
    "Just a moment...",
])
def test_block_phrases_detected_in_any_case(text):
    verdict = BlockDetector().classify(200, text)

    assert verdict.blocked
    assert verdict.reason in text.lower().replace("   ", " ")


def test_ordinary_content_not_blocked():
    detector = BlockDetector()

    assert not detector.is_blocked(200, "Acme Corp - Industrial supplies, 1 Main St")
    assert not detector.is_blocked(None, None)


def test_status_403_blocked_regardless_of_text():
    verdict = BlockDetector().classify(403, "Welcome to the directory")

    assert verdict.blocked
    assert verdict.reason == "HTTP 403"


def test_other_error_statuses_are_not_blocks():
    assert not BlockDetector().is_blocked(404, "Page not found")
    assert not BlockDetector().is_blocked(500, "Internal error")


def test_custom_phrases_and_statuses():
    detector = BlockDetector(phrases=["captcha"], blocked_statuses=[403, 429])

    assert detector.is_blocked(200, "Solve this CAPTCHA")
    assert detector.is_blocked(429, "")
    assert not detector.is_blocked(200, "Access denied")


def test_empty_phrase_list_only_checks_status():
    detector = BlockDetector(phrases=[])

    assert not detector.is_blocked(200, "access denied")
    assert detector.is_blocked(403, "")
