"""Keystore format conversion."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from kstools.core.exceptions import (
    EmptyCredentialError,
    EntryCopyError,
    KeystoreToolsError,
)
from kstools.core.result import Result
from kstools.keystore import (
    KeyEntry,
    Keystore,
    StoreFormat,
    load_keystore,
    save_keystore,
)
from kstools.logging import get_audit_logger, get_logger
from kstools.metrics import (
    record_conversion,
    record_entries_copied,
    record_entries_skipped,
    record_error,
    track_conversion_duration,
)

logger = get_logger("converter")


@dataclass
class ConversionReport:
    """Outcome of a successful conversion."""

    source_path: Path
    dest_path: Path
    source_format: StoreFormat
    dest_format: StoreFormat
    copied: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "source": str(self.source_path),
            "destination": str(self.dest_path),
            "source_format": self.source_format.value,
            "dest_format": self.dest_format.value,
            "copied": list(self.copied),
            "skipped": list(self.skipped),
        }


def _copy_key_entries(source: Keystore, dest: Keystore, password: str, report: ConversionReport) -> None:
    for entry in source:
        if not isinstance(entry, KeyEntry):
            logger.debug("Skipping trust-only entry", fields={"alias": entry.alias})
            report.skipped.append(entry.alias)
            continue

        try:
            key = entry.unlock(password)
        except KeystoreToolsError as e:
            raise EntryCopyError(entry.alias, str(e)) from e
        if not entry.certificate_chain:
            raise EntryCopyError(entry.alias, "entry has no certificate chain")

        dest.set_key_entry(entry.alias, key, entry.certificate_chain)
        logger.debug("Copied key entry", fields={"alias": entry.alias})
        report.copied.append(entry.alias)


def convert_keystore(
    source_path: Path | str,
    password: str,
    dest_path: Path | str,
    *,
    source_format: StoreFormat | str | None = None,
    dest_format: StoreFormat | str = StoreFormat.PKCS12,
) -> ConversionReport:
    """
    Convert a keystore into another container format.

    Every key entry is copied with its certificate chain under the same
    alias; trust-only entries are skipped. The same password opens the
    source store, unlocks each key and protects the destination.

    Args:
        source_path: Existing keystore
        password: Store and key password
        dest_path: File to write
        source_format: Source format; detected from the file when None
        dest_format: Destination format

    Returns:
        ConversionReport listing copied and skipped aliases

    Raises:
        EmptyCredentialError: If password is empty
        KeystoreNotFoundError: If the source does not exist
        IncorrectPasswordError: If the password does not open the source
        KeystoreFormatError: If the source cannot be decoded
        EntryCopyError: If a key entry cannot be retrieved
        KeystoreWriteError: If the destination cannot be written
    """
    if not password or not password.strip():
        raise EmptyCredentialError("A non-empty keystore password is required")

    source_path = Path(source_path)
    dest_path = Path(dest_path)
    dest_format = StoreFormat.from_name(dest_format)
    if source_format is not None:
        source_format = StoreFormat.from_name(source_format)

    audit = get_audit_logger()
    try:
        with track_conversion_duration(dest_format.value):
            source = load_keystore(source_path, password, source_format)
            report = ConversionReport(
                source_path=source_path,
                dest_path=dest_path,
                source_format=source.format,
                dest_format=dest_format,
            )

            dest = Keystore(dest_format)
            _copy_key_entries(source, dest, password, report)
            save_keystore(dest, dest_path, password)
    except KeystoreToolsError as e:
        record_conversion(success=False)
        record_error(type(e).__name__, "convert")
        audit.conversion_failed(str(source_path), str(dest_path), str(e))
        raise

    record_conversion(success=True)
    record_entries_copied(dest_format.value, len(report.copied))
    record_entries_skipped(len(report.skipped))
    audit.keystore_converted(
        source=str(source_path),
        destination=str(dest_path),
        dest_format=dest_format.value,
        copied=report.copied,
        skipped=report.skipped,
    )
    logger.info(
        f"Converted {source_path} to {dest_format.value}",
        fields={"copied": len(report.copied), "skipped": len(report.skipped)},
    )
    return report


def convert(
    source_path: Path | str,
    password: str,
    dest_path: Path | str,
    **kwargs,
) -> Result[ConversionReport]:
    """
    Convert a keystore, reporting failure as a Result instead of raising.

    Accepts the same keyword arguments as convert_keystore().
    """
    try:
        return Result.success(convert_keystore(source_path, password, dest_path, **kwargs))
    except KeystoreToolsError as e:
        logger.warning(
            f"Conversion of {source_path} failed: {e}",
            fields={"kind": e.kind.value},
        )
        return Result.failure(e)
