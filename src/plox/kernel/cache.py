"""On-disk cache of extracted series.

One CSV file per (input file, line signature). The first line of every entry
is a header carrying the validity fingerprint:

    # plox-cache v1 signature=sha256:... size=<bytes> mtime_ns=<ns> rows=<n>

followed by `timestamp,value,count` rows. An entry is served only if the
header matches the current log file and signature and every row parses;
anything else is treated as a miss and re-extracted. Entries are written to a
temporary file and renamed into place, so readers never observe a partial
entry under its final name.
"""

import csv
import logging
import os
import tempfile
import threading
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .errors import CacheWriteFailure, InputFileError
from .extractor import Sample, extract_samples, regex_pattern
from .hash_utils import hash_signature, line_signature
from .spec import Line
from .timestamp import TimestampFormat

logger = logging.getLogger(__name__)

CACHE_DIR_NAME = ".plox"
CACHE_FORMAT_VERSION = "v1"
CSV_COLUMNS = ("timestamp", "value", "count")
_HEADER_PREFIX = f"# plox-cache {CACHE_FORMAT_VERSION} "


@dataclass(frozen=True)
class CacheRoot:
    """Where cache entries live.

    With `root` set, the absolute path of each log file is mirrored inside it
    (`/var/log/app/debug.log` -> `<root>/var/log/app/`). Otherwise a `.plox/`
    directory next to each log file is used.
    """
    root: Optional[Path] = None

    def directory_for(self, log_file: Path) -> Path:
        try:
            absolute = log_file.resolve(strict=True)
        except OSError as e:
            raise InputFileError(log_file, str(e)) from e
        if self.root is not None:
            relative = absolute.relative_to(absolute.anchor)
            return Path(self.root) / relative.parent
        return absolute.parent / CACHE_DIR_NAME


@dataclass(frozen=True)
class Fingerprint:
    size: int
    mtime_ns: int

    @classmethod
    def of(cls, path: Path) -> "Fingerprint":
        try:
            st = path.stat()
        except OSError as e:
            raise InputFileError(path, str(e)) from e
        return cls(size=st.st_size, mtime_ns=st.st_mtime_ns)


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    scans: int = 0
    write_failures: int = 0


def _format_header(signature_hash: str, fingerprint: Fingerprint, rows: int) -> str:
    return (
        f"{_HEADER_PREFIX}signature={signature_hash} "
        f"size={fingerprint.size} mtime_ns={fingerprint.mtime_ns} rows={rows}"
    )


def _parse_header(line: str) -> Optional[Dict[str, str]]:
    if not line.startswith(_HEADER_PREFIX):
        return None
    fields = {}
    for token in line[len(_HEADER_PREFIX):].split():
        key, sep, value = token.partition("=")
        if not sep:
            return None
        fields[key] = value
    if not {"signature", "size", "mtime_ns", "rows"} <= fields.keys():
        return None
    if not fields["rows"].isdigit():
        return None
    return fields


class SeriesCache:
    """Get-or-extract cache for (input file, line) series.

    Safe to share between worker threads: every (file, signature) pair maps
    to its own entry file.
    """

    def __init__(
        self,
        cache_root: CacheRoot,
        force_regen: bool = False,
        extract: Callable[..., List[Sample]] = extract_samples,
    ):
        self.cache_root = cache_root
        self.force_regen = force_regen
        self._extract = extract
        self.stats = CacheStats()
        self._lock = threading.Lock()

    def _count(self, stat: str) -> None:
        with self._lock:
            setattr(self.stats, stat, getattr(self.stats, stat) + 1)

    def signature_hash(self, line: Line, timestamp_format: TimestampFormat) -> str:
        return hash_signature(line_signature(line, regex_pattern(line), timestamp_format.fmt))

    def entry_path(self, log_file: Path, line: Line, timestamp_format: TimestampFormat) -> Path:
        digest = self.signature_hash(line, timestamp_format).split(":", 1)[1]
        name = f"{log_file.name}__{line.data_source.kind}__{digest[:16]}.csv"
        return self.cache_root.directory_for(log_file) / name

    def get_or_extract(
        self,
        log_file: Path,
        line: Line,
        timestamp_format: TimestampFormat,
        allow_invalid_timestamps: bool = False,
    ) -> List[Sample]:
        """Return the line's samples for `log_file`, scanning only on a cache miss."""
        log_file = Path(log_file)
        if not log_file.is_file():
            raise InputFileError(log_file, "Not a regular file")

        signature = self.signature_hash(line, timestamp_format)
        entry = self.entry_path(log_file, line, timestamp_format)
        fingerprint = Fingerprint.of(log_file)

        if not self.force_regen:
            cached = self._read(entry, signature, fingerprint)
            if cached is not None:
                self._count("hits")
                logger.debug("Using cached file for regex: %s file: %s", regex_pattern(line), entry)
                return cached
        self._count("misses")

        self._count("scans")
        samples = self._extract(log_file, line, timestamp_format, allow_invalid_timestamps)

        try:
            self._write(entry, samples, signature, fingerprint)
        except CacheWriteFailure as e:
            self._count("write_failures")
            logger.warning("%s; continuing without cache", e)
        return samples

    def _read(self, entry: Path, signature: str, fingerprint: Fingerprint) -> Optional[List[Sample]]:
        """Read a complete, valid entry or return None."""
        try:
            with open(entry, "r", encoding="utf-8", newline="") as f:
                header = _parse_header(f.readline().rstrip("\r\n"))
                if header is None:
                    logger.debug("Cache entry %s has no valid header", entry)
                    return None
                if (
                    header["signature"] != signature
                    or header["size"] != str(fingerprint.size)
                    or header["mtime_ns"] != str(fingerprint.mtime_ns)
                ):
                    logger.debug("Cache entry %s is stale", entry)
                    return None

                reader = csv.reader(f)
                if tuple(next(reader, ())) != CSV_COLUMNS:
                    return None
                samples = []
                for row in reader:
                    if len(row) != len(CSV_COLUMNS):
                        return None
                    samples.append(Sample(datetime.fromisoformat(row[0]), float(row[1]), int(row[2])))
        except FileNotFoundError:
            return None
        except (OSError, ValueError, csv.Error) as e:
            logger.debug("Cache entry %s unreadable: %s", entry, e)
            return None

        if len(samples) != int(header["rows"]):
            logger.debug("Cache entry %s is truncated", entry)
            return None
        return samples

    def _write(self, entry: Path, samples: List[Sample], signature: str, fingerprint: Fingerprint) -> None:
        """Write an entry atomically (temporary file + rename)."""
        tmp_name = None
        try:
            entry.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                newline="",
                dir=entry.parent,
                prefix=f".{entry.name}.",
                suffix=".tmp",
                delete=False,
            ) as f:
                tmp_name = f.name
                f.write(_format_header(signature, fingerprint, len(samples)) + "\n")
                writer = csv.writer(f, lineterminator="\n")
                writer.writerow(CSV_COLUMNS)
                for s in samples:
                    writer.writerow([s.timestamp.isoformat(timespec="microseconds"), repr(s.value), s.count])
            os.replace(tmp_name, entry)
            tmp_name = None
        except OSError as e:
            raise CacheWriteFailure(entry, str(e)) from e
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass
