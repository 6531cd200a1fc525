import asyncio
import logging
import sys
from pathlib import Path
from typing import NoReturn

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from parkhurst_booking.config import (
    EMAIL_PATTERN,
    create_sample_config,
    list_facilities,
    load_config,
    settings,
    validate_config,
)
from parkhurst_booking.exceptions import BookingError, ConfigError
from parkhurst_booking.services.booking_service import ADVANCE_DAYS_FROM_CONFIG, booking_service

__version__ = "1.0.0"

logger = logging.getLogger(__name__)

console = Console()
error_console = Console(stderr=True)

EXAMPLES = [
    ("Basic booking", "parkhurst-booking book -f tennis_lower -d 2025-06-15 -s 12:00 -e 13:00"),
    (
        "Book the configured number of days ahead",
        "parkhurst-booking book -f tennis_lower -s 12:00 -e 13:00 --book-in-advance-days",
    ),
    (
        "Book exactly 7 days ahead",
        "parkhurst-booking book -f tennis_lower -s 12:00 -e 13:00 --book-in-advance-days 7",
    ),
    (
        "Book with a different profile (email)",
        'parkhurst-booking book -f tennis_lower -d 2025-06-15 -s 12:00 -e 13:00 --profile "john.doe@example.com"',
    ),
    (
        "Book with a custom signature",
        'parkhurst-booking book -f tennis_lower -d 2025-06-15 -s 12:00 -e 13:00 --signature "JD"',
    ),
    (
        "Book with a custom title",
        'parkhurst-booking book -f tennis_lower -d 2025-06-15 -s 12:00 -e 13:00 --title "Tennis Practice"',
    ),
    (
        "Show the browser (for debugging)",
        "parkhurst-booking book -f tennis_lower -d 2025-06-15 -s 12:00 -e 13:00 --no-headless",
    ),
    ("List available facilities", "parkhurst-booking list"),
    ("Validate configuration", "parkhurst-booking validate"),
    ("Write a starter config file", "parkhurst-booking init-config config/config.json"),
]

TIPS = [
    "Use --no-headless to watch the browser while debugging",
    "Check available facilities with: parkhurst-booking list",
    "Profiles live in .env: PROFILE_JOHN_DOE_EXAMPLE_COM_USERNAME / _PASSWORD",
    "Profile signatures can be set with PROFILE_JOHN_DOE_EXAMPLE_COM_SIGNATURE",
    "--signature overrides both the profile and the config signature",
    "Booking title format: {start - buffer} - {end + buffer}",
    "Failed attempts are appended to booking_errors.log",
]


def configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stderr)],
    )
    # Selenium and webdriver-manager are chatty at INFO
    logging.getLogger("selenium").setLevel(logging.WARNING)
    logging.getLogger("WDM").setLevel(logging.WARNING)


def fail(message: str) -> NoReturn:
    error_console.print(f"[bold red]❌ {escape(message)}[/]")
    sys.exit(1)


@click.group()
@click.version_option(__version__, prog_name="parkhurst-booking")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """Automated community facility booking for Parkhurst."""
    configure_logging(verbose)


config_option = click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Config file path (default: BOOKING_CONFIG_PATH or config/config.json).",
)


@cli.command()
@click.option("-f", "--facility", required=True, help="Facility to book (e.g. tennis_lower).")
@click.option("-d", "--date", "booking_date", default=None, help="Booking date (YYYY-MM-DD).")
@click.option(
    "--book-in-advance-days",
    "advance_days",
    type=int,
    is_flag=False,
    flag_value=ADVANCE_DAYS_FROM_CONFIG,
    default=None,
    help="Book N days from today; without N, use defaults.bookInAdvanceDays (or 15).",
)
@click.option("-s", "--start", "start_time", required=True, help="Start time (HH:MM).")
@click.option("-e", "--end", "end_time", required=True, help="End time (HH:MM).")
@click.option("-p", "--profile", default=None, help="Profile email whose credentials to use.")
@click.option("--signature", default=None, help="Signature (overrides profile and config).")
@click.option("-t", "--title", default=None, help="Booking title (overrides the generated one).")
@click.option("--headless/--no-headless", default=None, help="Run the browser headless.")
@click.option("--force-date", is_flag=True, help="Allow booking a date in the past.")
@config_option
def book(
    facility: str,
    booking_date: str | None,
    advance_days: int | None,
    start_time: str,
    end_time: str,
    profile: str | None,
    signature: str | None,
    title: str | None,
    headless: bool | None,
    force_date: bool,
    config_path: str | None,
) -> None:
    """Book a community facility."""
    try:
        if profile and not EMAIL_PATTERN.match(profile):
            raise ConfigError("Invalid email format for profile")

        config = load_config(config_path, profile)
        validate_config(config)

        request = booking_service.build_request(
            config,
            facility_key=facility,
            start_time=start_time,
            end_time=end_time,
            explicit_date=booking_date,
            advance_days=advance_days,
            signature=signature,
            title=title,
            headless=headless,
            force_date=force_date,
        )
    except BookingError as e:
        fail(f"Booking failed: {e.message}")

    summary = Table(show_header=False, box=None, padding=(0, 1))
    summary.add_row("📧 Email", config.credentials.email)
    summary.add_row("📅 Date", request.booking_date.isoformat())
    summary.add_row("⏰ Time", f"{request.start_time} - {request.end_time}")
    summary.add_row("🏢 Facility", request.facility.name)
    summary.add_row("✍️  Signature", escape(request.signature))
    summary.add_row("🤖 Headless", "Yes" if request.headless else "No")
    if request.title:
        summary.add_row("📝 Custom Title", escape(request.title))
    console.print(Panel(summary, title="🎯 Booking Summary", border_style="blue", expand=False))

    try:
        result = asyncio.run(booking_service.execute(config, request))
    except BookingError as e:
        logger.debug(f"Booking failed: {e.describe()}")
        fail(f"Booking failed: {e.message}")

    console.print("[bold green]✅ Booking process completed successfully![/]")
    if result.booking_title:
        console.print(f"[dim]Booked as: {escape(result.booking_title)}[/]")


@cli.command("list")
@config_option
def list_command(config_path: str | None) -> None:
    """List available facilities."""
    try:
        config = load_config(config_path)
        validate_config(config)
    except BookingError as e:
        fail(f"Error: {e.message}")

    table = Table(title="📋 Available Facilities", title_style="bold blue")
    table.add_column("Key", style="green")
    table.add_column("Name", style="white")
    table.add_column("Space ID", style="dim")
    for key, facility in list_facilities(config):
        table.add_row(key, facility.name, facility.space_id)
    console.print(table)


@cli.command()
@config_option
def validate(config_path: str | None) -> None:
    """Validate the configuration file."""
    try:
        config = load_config(config_path)
        validate_config(config)
    except BookingError as e:
        fail(f"Configuration error: {e.message}")

    console.print("[bold green]✅ Configuration is valid![/]")
    console.print(f"[blue]📧 Email: {config.credentials.email}[/]")
    console.print(f"[blue]🏢 Facilities: {len(config.facilities)}[/]")


@cli.command()
def examples() -> None:
    """Show usage examples."""
    console.rule("[bold blue]📖 Usage Examples")
    for number, (description, command) in enumerate(EXAMPLES, start=1):
        console.print(f"\n[yellow]{number}. {description}:[/]")
        console.print(f"   [white]{command}[/]", soft_wrap=True)

    console.print("\n[bold blue]💡 Tips:[/]")
    for tip in TIPS:
        console.print(f"[dim]   • {tip}[/]")
    console.print()


@cli.command("init-config")
@click.argument("output_path", type=click.Path(dir_okay=False))
@click.option("--force", is_flag=True, help="Overwrite an existing file.")
def init_config(output_path: str, force: bool) -> None:
    """Write a sample config file to OUTPUT_PATH."""
    if Path(output_path).exists() and not force:
        fail(f"{output_path} already exists (use --force to overwrite)")

    try:
        path = create_sample_config(output_path)
    except OSError as e:
        fail(f"Cannot write {output_path}: {e}")

    console.print(f"[bold green]✅ Sample config written to {path}[/]")
    console.print("[yellow]📝 Edit it with your credentials and facilities before booking.[/]")


if __name__ == "__main__":
    cli()
