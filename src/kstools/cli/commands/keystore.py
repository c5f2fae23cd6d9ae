"""Keystore conversion and inspection commands for CLI."""

from __future__ import annotations

import sys

import click

from kstools.cli.main import Context, handle_errors, pass_context
from kstools.cli.output import (
    OutputFormat,
    console,
    create_table,
    describe_certificate,
    format_datetime,
    format_fingerprint,
    print_error,
    print_info,
    print_json,
    print_success,
)
from kstools.core.converter import convert
from kstools.keystore import KeyEntry, StoreFormat, load_keystore
from kstools.logging import AuditAction, get_audit_logger

FORMAT_CHOICES = [f.value for f in StoreFormat]


@click.command("convert")
@click.argument("source", type=click.Path(exists=True, dir_okay=False))
@click.argument("dest", type=click.Path(dir_okay=False))
@click.option(
    "--password",
    "-p",
    prompt=True,
    hide_input=True,
    help="Password of the source keystore; also protects the destination",
)
@click.option(
    "--source-format",
    "-s",
    type=click.Choice(FORMAT_CHOICES, case_sensitive=False),
    default=None,
    help="Source keystore format (detected when omitted)",
)
@click.option(
    "--dest-format",
    "-d",
    type=click.Choice(FORMAT_CHOICES, case_sensitive=False),
    default=StoreFormat.PKCS12.value,
    show_default=True,
    help="Destination keystore format",
)
@pass_context
@handle_errors
def convert_cmd(
    ctx: Context,
    source: str,
    dest: str,
    password: str,
    source_format: str | None,
    dest_format: str,
):
    """
    Convert a keystore into another format.

    Every key entry is copied with its certificate chain; trusted
    certificate entries are skipped.

    Example:
        kstools convert alice.store alice.p12 -p secret123
    """
    result = convert(
        source,
        password,
        dest,
        source_format=source_format,
        dest_format=dest_format,
    )
    if not result.ok:
        print_error(f"{result.message} ({result.kind.value})")
        sys.exit(1)

    report = result.value
    if ctx.output_format == OutputFormat.JSON:
        print_json(report)
        return

    print_success(
        f"Wrote {report.dest_path} ({report.dest_format.value}) from "
        f"{report.source_path} ({report.source_format.value})"
    )
    for alias in report.copied:
        console.print(f"  [green]+[/green] {alias}")
    for alias in report.skipped:
        console.print(f"  [dim]- {alias} (trusted certificate, skipped)[/dim]")


@click.command("inspect")
@click.argument("store", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--password",
    "-p",
    prompt=True,
    hide_input=True,
    help="Keystore password",
)
@click.option(
    "--store-format",
    "-s",
    type=click.Choice(FORMAT_CHOICES, case_sensitive=False),
    default=None,
    help="Keystore format (detected when omitted)",
)
@pass_context
@handle_errors
def inspect_cmd(ctx: Context, store: str, password: str, store_format: str | None):
    """
    List the entries of a keystore.

    Example:
        kstools inspect alice.p12 -p secret123
    """
    keystore = load_keystore(store, password, store_format)
    get_audit_logger().log(
        action=AuditAction.KEYSTORE_INSPECT,
        resource=store,
        details={"entries": len(keystore)},
    )

    entries = []
    for entry in keystore:
        if isinstance(entry, KeyEntry):
            entries.append({
                "alias": entry.alias,
                "type": "key",
                "chain": [describe_certificate(c) for c in entry.certificate_chain],
            })
        else:
            entries.append({
                "alias": entry.alias,
                "type": "trusted",
                "chain": [describe_certificate(entry.certificate)],
            })

    if ctx.output_format == OutputFormat.JSON:
        print_json({"path": store, "format": keystore.format.value, "entries": entries})
        return

    if not entries:
        print_info(f"{store} ({keystore.format.value}) has no entries")
        return

    table = create_table(
        title=f"{store} ({keystore.format.value})",
        columns=[
            ("Alias", "cyan"),
            ("Type", ""),
            ("Subject", ""),
            ("Chain", ""),
            ("Expires", ""),
            ("SHA-256", "dim"),
        ],
    )
    for entry in keystore:
        cert = keystore.get_certificate(entry.alias)
        table.add_row(
            entry.alias,
            "key" if isinstance(entry, KeyEntry) else "trusted",
            cert.subject.rfc4514_string(),
            str(len(keystore.get_certificate_chain(entry.alias)) or 1),
            format_datetime(cert.not_valid_after_utc),
            format_fingerprint(cert),
        )
    console.print(table)
