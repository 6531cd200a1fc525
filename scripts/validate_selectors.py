#!/usr/bin/env python3
"""
Validate the selectors in skedda_dom_schema.py against captured HTML fixtures.

This script:
1. Collects every CSS selector from the DOM schema
2. Tests each selector against the captured HTML fixtures
3. Reports which selectors work and which are broken

Fallback selectors are expected to miss on any given snapshot; a chain is
only broken when none of its selectors match.

Usage:
    python scripts/validate_selectors.py
"""

import json
from pathlib import Path

from bs4 import BeautifulSoup

from parkhurst_booking.providers.skedda_dom_schema import DOM

FIXTURES_DIR = Path(__file__).parent.parent / "tests" / "fixtures"

# Chain name -> (fixture, selectors in priority order)
CHAINS = {
    "session.email_inputs": ("skedda_login_page", DOM.SESSION.email_inputs),
    "session.password_inputs": ("skedda_login_page", DOM.SESSION.password_inputs),
    "session.submit_buttons": ("skedda_login_page", DOM.SESSION.submit_buttons),
    "session.logged_in_markers": ("skedda_booking_form", DOM.SESSION.logged_in_markers),
    "form.title_inputs": ("skedda_booking_form", DOM.FORM.title_inputs),
    "form.signature_inputs": ("skedda_booking_form", DOM.FORM.signature_inputs),
    "confirm.structural": ("skedda_booking_form", DOM.CONFIRM.structural),
    "dialog.structural": ("skedda_booking_form", DOM.DIALOG.structural),
    "error_messages.containers": ("skedda_booking_form", DOM.ERROR_MESSAGES.containers),
}


def load_html(fixture_name: str) -> BeautifulSoup | None:
    """Load an HTML fixture and return BeautifulSoup object."""
    html_path = FIXTURES_DIR / f"{fixture_name}.html"

    if not html_path.exists():
        return None

    html = html_path.read_text(encoding="utf-8")
    return BeautifulSoup(html, "html.parser")


def test_selector(soup: BeautifulSoup, selector: str) -> tuple[int, list[str]]:
    """Test a CSS selector against HTML and return match count and sample text."""
    try:
        elements = soup.select(selector)
    except ValueError as e:
        return -1, [f"ERROR: {e}"]

    samples = []
    for el in elements[:3]:  # First 3 matches
        text = el.get_text(strip=True)[:50]
        classes = el.get("class", [])
        class_str = ".".join(classes) if classes else ""
        samples.append(f"<{el.name} class='{class_str}'>{text}...")
    return len(elements), samples


def validate_selectors():
    """Main validation routine."""
    print("=" * 70)
    print("DOM Selector Validation Report")
    print("=" * 70)

    fixtures = {name: load_html(name) for name in ("skedda_login_page", "skedda_booking_form")}
    for name, soup in fixtures.items():
        if soup is None:
            print(f"WARNING: Fixture '{name}' not found")

    results = {"working": [], "broken": [], "errors": []}

    for chain, (fixture, selectors) in CHAINS.items():
        print(f"\n{'=' * 70}")
        print(f"Chain: {chain} ({fixture})")
        print("=" * 70)

        soup = fixtures.get(fixture)
        if soup is None:
            print("  SKIPPED: No fixture available")
            continue

        chain_matched = False
        for priority, selector in enumerate(selectors, start=1):
            count, samples = test_selector(soup, selector)

            if count > 0:
                status = "[OK] FOUND"
                chain_matched = True
            elif count == 0:
                status = "[-] NOT FOUND"
            else:
                status = "[!] ERROR"
                results["errors"].append((chain, selector, samples[0]))

            print(f"\n  {priority}. {selector}")
            print(f"    Status: {status} ({max(count, 0)} matches)")
            if count > 0:
                for sample in samples:
                    print(f"    Sample: {sample}")

        if chain_matched:
            results["working"].append(chain)
        else:
            results["broken"].append(chain)

    # Summary
    print("\n" + "=" * 70)
    print("SUMMARY")
    print("=" * 70)

    print(f"\n[OK] Working chains:   {len(results['working'])}")
    print(f"[X]  Broken chains:    {len(results['broken'])}")
    print(f"[!]  Error selectors:  {len(results['errors'])}")

    if results["broken"]:
        print("\n" + "-" * 70)
        print("BROKEN CHAINS (no selector matched):")
        print("-" * 70)
        for chain in results["broken"]:
            print(f"  {chain}")

    if results["errors"]:
        print("\n" + "-" * 70)
        print("ERROR SELECTORS (invalid syntax?):")
        print("-" * 70)
        for chain, selector, error in results["errors"]:
            print(f"  [{chain}] {selector}")
            print(f"    Error: {error}")

    report_path = FIXTURES_DIR / "selector_report.json"
    report = {
        "working": results["working"],
        "broken": results["broken"],
        "errors": [{"chain": c, "selector": s, "error": e} for c, s, e in results["errors"]],
    }
    report_path.write_text(json.dumps(report, indent=2), encoding="utf-8")
    print(f"\nReport saved to: {report_path}")


if __name__ == "__main__":
    validate_selectors()
