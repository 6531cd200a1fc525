#!/usr/bin/env python3
"""
Capture HTML snapshots from the live Skedda booking site for testing.

This script:
1. Opens a booking deep link for the first configured facility
2. Captures the login page, then logs in with the configured credentials
3. Captures the pre-filled booking form
4. Saves them as test fixtures

Nothing is submitted; no booking is made.

Usage:
    python scripts/capture_html_snapshots.py [path/to/config.json]
"""

import json
import sys
import time
from datetime import date, timedelta
from pathlib import Path

from parkhurst_booking.config import list_facilities, load_config, validate_config
from parkhurst_booking.exceptions import BookingError
from parkhurst_booking.providers.skedda_dom_schema import DOM
from parkhurst_booking.providers.skedda_provider import SkeddaProvider
from parkhurst_booking.services.link_builder import build_booking_url

FIXTURES_DIR = Path(__file__).parent.parent / "tests" / "fixtures"

# Wait time constants (in seconds)
PAGE_LOAD_WAIT = 2
FORM_RENDER_WAIT = 3


def save_snapshot(driver, name: str, metadata: dict | None = None) -> Path:
    """Save HTML snapshot and metadata."""
    FIXTURES_DIR.mkdir(parents=True, exist_ok=True)

    html_path = FIXTURES_DIR / f"{name}.html"
    html_path.write_text(driver.page_source, encoding="utf-8")
    print(f"  Saved: {html_path}")

    if metadata:
        meta_path = FIXTURES_DIR / f"{name}.meta.json"
        metadata["url"] = driver.current_url
        metadata["title"] = driver.title
        metadata["captured_at"] = time.strftime("%Y-%m-%d %H:%M:%S")
        meta_path.write_text(json.dumps(metadata, indent=2), encoding="utf-8")
        print(f"  Saved: {meta_path}")

    return html_path


def capture_snapshots(config_path: str | None = None):
    """Main capture routine."""
    print("=" * 60)
    print("Skedda HTML Snapshot Capture")
    print("=" * 60)

    try:
        config = load_config(config_path)
        validate_config(config)
    except BookingError as e:
        print(f"ERROR: {e.message}")
        sys.exit(1)

    facility_key, facility = list_facilities(config)[0]
    target_date = date.today() + timedelta(days=7)
    booking_url = build_booking_url(config.urls.base_url, facility.space_id, target_date, "12:00", "13:00")
    print(f"Facility: {facility_key} ({facility.name}), date: {target_date}")

    provider = SkeddaProvider(config)
    driver = provider._create_driver(headless=True)
    page = provider._create_page(driver)

    try:
        # 1. Capture whatever the deep link shows first
        print("\n[1/3] Opening booking link...")
        page.goto(booking_url)
        time.sleep(PAGE_LOAD_WAIT)

        if provider.is_logged_in(page):
            print("  Session already authenticated, skipping login page")
        else:
            save_snapshot(driver, "skedda_login_page", {"state": "login_form"})

            # 2. Log in
            print("\n[2/3] Performing login...")
            try:
                provider.perform_login(page)
            except BookingError as e:
                print(f"ERROR: Login failed: {e.message}")
                save_snapshot(driver, "skedda_login_failed", {"state": "login_failed"})
                sys.exit(1)
            print(f"  Login successful. URL: {driver.current_url}")

        # 3. Capture the booking form
        print("\n[3/3] Capturing booking form...")
        page.wait_for_selector(DOM.FORM.form_controls, SkeddaProvider.FORM_READY_TIMEOUT)
        time.sleep(FORM_RENDER_WAIT)
        save_snapshot(
            driver,
            "skedda_booking_form",
            {"state": "booking_form", "facility": facility_key, "target_date": str(target_date)},
        )

        print("\n" + "=" * 60)
        print("Snapshot capture complete!")
        print(f"Fixtures saved to: {FIXTURES_DIR}")
        print("=" * 60)

    finally:
        driver.quit()
        print("\nDriver closed.")


if __name__ == "__main__":
    capture_snapshots(sys.argv[1] if len(sys.argv) > 1 else None)
