"""Output formatting helpers for CLI."""

from __future__ import annotations

import json
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from rich.console import Console
from rich.table import Table

# Global console instances
console = Console()
error_console = Console(stderr=True)


class OutputFormat(str, Enum):
    """Output format options."""

    TEXT = "text"
    JSON = "json"


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]✓[/green] {message}")


def print_error(message: str) -> None:
    """Print an error message to stderr."""
    error_console.print(f"[red]✗[/red] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]![/yellow] {message}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[blue]ℹ[/blue] {message}")


def print_json(data: Any) -> None:
    """Print data as formatted JSON."""
    if hasattr(data, "to_dict"):
        data = data.to_dict()

    # Handle non-serializable types
    def serialize(obj):
        if isinstance(obj, datetime):
            return obj.isoformat()
        elif isinstance(obj, Path):
            return str(obj)
        elif hasattr(obj, "value"):  # Enum
            return obj.value
        return str(obj)

    console.print_json(json.dumps(data, default=serialize, indent=2))


def print_key_value(key: str, value: str, key_width: int = 20) -> None:
    """Print a key-value pair."""
    console.print(f"[cyan]{key:<{key_width}}[/cyan] {value}")


def create_table(
    title: str | None = None,
    columns: list[tuple[str, str]] | None = None,
) -> Table:
    """
    Create a rich table.

    Args:
        title: Optional table title
        columns: List of (header, style) tuples

    Returns:
        Rich Table instance
    """
    table = Table(title=title, show_header=True, header_style="bold cyan")

    if columns:
        for header, style in columns:
            table.add_column(header, style=style)

    return table


def format_datetime(dt: datetime | None) -> str:
    """Format a datetime for display."""
    if dt is None:
        return "-"
    return dt.strftime("%Y-%m-%d %H:%M:%S %Z")


def format_fingerprint(certificate: x509.Certificate, truncate: bool = True) -> str:
    """SHA-256 fingerprint of a certificate as colon-separated hex."""
    fingerprint = certificate.fingerprint(hashes.SHA256()).hex(":").upper()
    if truncate and len(fingerprint) > 23:
        return fingerprint[:23] + "..."
    return fingerprint


def describe_certificate(certificate: x509.Certificate) -> dict[str, Any]:
    """Summarize a certificate for display or JSON output."""
    return {
        "subject": certificate.subject.rfc4514_string(),
        "issuer": certificate.issuer.rfc4514_string(),
        "serial": format(certificate.serial_number, "x"),
        "not_before": certificate.not_valid_before_utc,
        "not_after": certificate.not_valid_after_utc,
        "sha256": format_fingerprint(certificate, truncate=False),
    }
