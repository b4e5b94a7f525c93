"""
Daily manifest of published variants.

One CSV file per calendar day (``<prefix>YYYY_MM_DD_processed_images.csv``)
lists every published key with the time it was recorded. Consolidation is a
read-modify-write of that object with no locking, versioning or conditional
write: two invocations that read the same day's file before either writes
will each upload their own view, and the later upload silently drops the
earlier invocation's rows. Callers that need a complete audit trail must
reconcile against the destination bucket.
"""

import csv
import io
from datetime import date, datetime, timezone
from typing import Iterable, List, Optional, Sequence
from zoneinfo import ZoneInfo

from .error_handling import is_not_found, with_error_handling
from .exceptions import ManifestDecodeError
from .models import ManifestEntry
from .observability import LogContext
from .protocols import LoggerProtocol, S3ClientProtocol

MANIFEST_FIELDS = ("name", "date")
MANIFEST_CONTENT_TYPE = "application/octet-stream"
MANIFEST_CONTENT_DISPOSITION = "attachment"


def manifest_name(day: date) -> str:
    return f"{day:%Y_%m_%d}_processed_images.csv"


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a ``Z`` suffix."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    utc = moment.astimezone(timezone.utc)
    return utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """Parse timestamps written by :func:`format_timestamp` or any ISO-8601 form."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def encode_manifest(entries: Iterable[ManifestEntry]) -> bytes:
    """
    Encode entries as CSV: quoted fields, ``\\n`` between rows, no trailing
    newline, header ``name,date``.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(MANIFEST_FIELDS)
    for entry in entries:
        writer.writerow((entry.name, entry.date))
    text = buffer.getvalue()
    if text.endswith("\n"):
        text = text[:-1]
    return text.encode("utf-8")


def decode_manifest(data: bytes, manifest_key: str = "<manifest>") -> List[ManifestEntry]:
    """
    Decode a stored manifest, preserving row order.

    Raises:
        ManifestDecodeError: On a bad header, a malformed row or a timestamp
            that is not ISO-8601. Rows are never skipped.
    """
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise ManifestDecodeError(manifest_key, 0, f"not UTF-8: {exc}") from exc

    if not text.strip():
        return []

    reader = csv.reader(io.StringIO(text))
    entries: List[ManifestEntry] = []
    header_seen = False
    for row in reader:
        if not row:
            continue
        if not header_seen:
            if tuple(row) != MANIFEST_FIELDS:
                raise ManifestDecodeError(
                    manifest_key, reader.line_num, f"unexpected header {row!r}"
                )
            header_seen = True
            continue
        if len(row) != len(MANIFEST_FIELDS):
            raise ManifestDecodeError(
                manifest_key, reader.line_num, f"expected 2 fields, got {len(row)}"
            )
        name, stamp = row
        if not name:
            raise ManifestDecodeError(manifest_key, reader.line_num, "empty name")
        try:
            parse_timestamp(stamp)
        except ValueError as exc:
            raise ManifestDecodeError(
                manifest_key, reader.line_num, f"bad date '{stamp}'"
            ) from exc
        entries.append(ManifestEntry(name=name, date=stamp))
    return entries


class ManifestConsolidator:
    """Appends published keys to the manifest of the current day."""

    def __init__(
        self,
        s3_client: S3ClientProtocol,
        bucket: str,
        logger: LoggerProtocol,
        prefix: str = "csv_log/",
        tz: Optional[ZoneInfo] = None,
        cache_control: str = "public, max-age=86400",
    ):
        self._s3_client = s3_client
        self._bucket = bucket
        self._logger = logger
        self._prefix = prefix
        self._tz = tz or ZoneInfo("UTC")
        self._cache_control = cache_control

    def manifest_key_for(self, moment: datetime) -> str:
        """Key of the manifest for the calendar day of ``moment`` in the configured timezone."""
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return self._prefix + manifest_name(moment.astimezone(self._tz).date())

    @with_error_handling
    def exists(self, manifest_key: str) -> bool:
        try:
            self._s3_client.head_object(Bucket=self._bucket, Key=manifest_key)
        except Exception as exc:
            if is_not_found(exc):
                return False
            raise
        return True

    @with_error_handling
    def read_entries(self, manifest_key: str) -> List[ManifestEntry]:
        """Current rows of the manifest, or an empty list when it does not exist yet."""
        if not self.exists(manifest_key):
            return []
        response = self._s3_client.get_object(Bucket=self._bucket, Key=manifest_key)
        return decode_manifest(response["Body"].read(), manifest_key)

    @with_error_handling
    def write_entries(self, manifest_key: str, entries: Sequence[ManifestEntry]) -> None:
        """Overwrite the manifest with ``entries``."""
        self._s3_client.put_object(
            Bucket=self._bucket,
            Key=manifest_key,
            Body=encode_manifest(entries),
            ContentType=MANIFEST_CONTENT_TYPE,
            ContentDisposition=MANIFEST_CONTENT_DISPOSITION,
            CacheControl=self._cache_control,
        )

    def consolidate(
        self,
        published_keys: Sequence[str],
        now: Optional[datetime] = None,
        context: Optional[LogContext] = None,
    ) -> Optional[str]:
        """
        Merge ``published_keys`` into today's manifest.

        Returns:
            The manifest key written, or None when there was nothing to add.

        Raises:
            S3Error: When the store rejects the read or the write
            ManifestDecodeError: When the stored manifest is corrupt
        """
        context = (context or LogContext()).with_operation("consolidate_manifest")
        if not published_keys:
            self._logger.info("No published variants to record in manifest", context)
            return None

        now = now or datetime.now(timezone.utc)
        manifest_key = self.manifest_key_for(now)
        context = context.with_metadata(manifest=f"s3://{self._bucket}/{manifest_key}")

        self._logger.debug(f"Looking for daily CSV: {manifest_key}", context)
        entries = self.read_entries(manifest_key)
        if entries:
            self._logger.debug(f"Found manifest with {len(entries)} rows", context)
        else:
            self._logger.debug("No manifest found, creating new one", context)

        stamp = format_timestamp(now)
        entries.extend(ManifestEntry(name=key, date=stamp) for key in published_keys)

        self.write_entries(manifest_key, entries)
        self._logger.info(
            f"Recorded {len(published_keys)} variant(s) in manifest",
            context,
            total_rows=len(entries),
        )
        return manifest_key
