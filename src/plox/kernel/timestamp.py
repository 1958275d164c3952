"""Timestamp format handling.

Formats use strftime-style specifiers, with chrono-style fractional seconds
(`%.3f`, `%.f`, ...) accepted as well. A format is compiled once into an
anchored regex so that a timestamp can be parsed from the *prefix* of a log
line and the remainder of the line handed to field matching.

Missing date parts are filled in deterministically:
- formats without any date specifier are anchored on FALLBACK_YEAR-01-01,
- formats with a date but no year use FALLBACK_YEAR.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

from .errors import ConfigurationError

DEFAULT_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S%.3f"
FALLBACK_YEAR = 2025

# Specifiers that make a format carry a date.
DATE_SPECIFIERS = (
    "%Y", "%C", "%y", "%q", "%m", "%b", "%B", "%h", "%d", "%e", "%a", "%A", "%w", "%u",
    "%U", "%W", "%G", "%g", "%V", "%j", "%D", "%x", "%F", "%v", "%s",
)

_MONTHS = {
    name: index
    for index, names in enumerate(
        [
            ("jan", "january"), ("feb", "february"), ("mar", "march"), ("apr", "april"),
            ("may", "may"), ("jun", "june"), ("jul", "july"), ("aug", "august"),
            ("sep", "september"), ("oct", "october"), ("nov", "november"), ("dec", "december"),
        ],
        start=1,
    )
    for name in names
}

_MONTH_RE = "|".join(sorted(_MONTHS, key=len, reverse=True))

# specifier -> (field, regex)
_SPECIFIERS: Dict[str, Tuple[Optional[str], str]] = {
    "Y": ("year", r"[+-]?\d{4}"),
    "y": ("year2", r"\d{2}"),
    "m": ("month", r"\d{1,2}"),
    "b": ("month_name", _MONTH_RE),
    "h": ("month_name", _MONTH_RE),
    "B": ("month_name", _MONTH_RE),
    "d": ("day", r"\d{1,2}"),
    "e": ("day", r" ?\d{1,2}"),
    "j": ("yday", r"\d{1,3}"),
    "a": (None, r"[A-Za-z]{3}"),
    "A": (None, r"[A-Za-z]+"),
    "H": ("hour", r"\d{1,2}"),
    "k": ("hour", r" ?\d{1,2}"),
    "I": ("hour12", r"\d{1,2}"),
    "l": ("hour12", r" ?\d{1,2}"),
    "p": ("ampm", r"[AaPp][Mm]"),
    "P": ("ampm", r"[AaPp][Mm]"),
    "M": ("minute", r"\d{1,2}"),
    "S": ("second", r"\d{1,2}"),
    "s": ("epoch", r"-?\d+"),
    "z": (None, r"[+-]\d{2}:?\d{2}"),
    "Z": (None, r"[A-Za-z]+"),
    "n": (None, r"\s*"),
    "t": (None, r"\s*"),
    "%": (None, "%"),
}

# composite specifiers, expanded in place while compiling
_COMPOSITES = {
    "T": "%H:%M:%S",
    "R": "%H:%M",
    "D": "%m/%d/%y",
    "F": "%Y-%m-%d",
    "r": "%I:%M:%S %p",
}

# chrono fractional forms: %.f %.3f %.6f %.9f %3f %6f %9f
_FRACTION_RE = re.compile(r"%(\.?)([369]?)f")


def _specifier_tokens(fmt: str) -> List[str]:
    """`%X` tokens of a format, left to right; `%%` is a single literal token."""
    tokens = []
    i = 0
    while i < len(fmt):
        if fmt[i] == "%" and i + 1 < len(fmt):
            tokens.append(fmt[i:i + 2])
            i += 2
        else:
            i += 1
    return tokens


def format_contains_date(fmt: str) -> bool:
    """True if the format contains any date specifier."""
    return any(token in DATE_SPECIFIERS for token in _specifier_tokens(fmt))


class TimestampFormat:
    """A compiled timestamp format."""

    def __init__(self, fmt: str = DEFAULT_TIMESTAMP_FORMAT):
        self.fmt = fmt
        self.has_date = format_contains_date(fmt)
        pattern, self._groups = _compile(fmt)
        self._regex = re.compile(pattern, re.IGNORECASE)

    def __repr__(self) -> str:
        return f"TimestampFormat({self.fmt!r})"

    def __str__(self) -> str:
        return self.fmt

    def __eq__(self, other) -> bool:
        return isinstance(other, TimestampFormat) and other.fmt == self.fmt

    def __hash__(self) -> int:
        return hash(self.fmt)

    def parse_prefix(self, line: str) -> Optional[Tuple[datetime, str]]:
        """Parse a timestamp from the start of `line`.

        Returns (timestamp, remainder) or None if the prefix does not match
        or names an impossible date.
        """
        m = self._regex.match(line)
        if m is None:
            return None
        try:
            ts = self._build(m)
        except (ValueError, OverflowError):
            return None
        return ts, line[m.end():]

    def parse(self, text: str) -> datetime:
        """Parse a complete timestamp string (e.g. a --time-range bound)."""
        text = text.strip()
        m = self._regex.fullmatch(text)
        if m is None:
            raise ValueError(f"'{text}' does not match timestamp format '{self.fmt}'")
        return self._build(m)

    def _build(self, m: "re.Match[str]") -> datetime:
        values: Dict[str, str] = {}
        for group, field in self._groups:
            raw = m.group(group)
            if raw is not None:
                values[field] = raw.strip()

        if "epoch" in values:
            ts = datetime.fromtimestamp(int(values["epoch"]), tz=timezone.utc).replace(tzinfo=None)
            return ts.replace(microsecond=_fraction_to_micros(values.get("fraction")))

        if "year" in values:
            year = int(values["year"])
        elif "year2" in values:
            y2 = int(values["year2"])
            year = 2000 + y2 if y2 < 69 else 1900 + y2
        else:
            year = FALLBACK_YEAR

        if "yday" in values:
            base = datetime(year, 1, 1) + timedelta(days=int(values["yday"]) - 1)
            month, day = base.month, base.day
        else:
            if "month" in values:
                month = int(values["month"])
            elif "month_name" in values:
                month = _MONTHS[values["month_name"].lower()]
            else:
                month = 1
            day = int(values.get("day", 1))

        if "hour12" in values:
            hour = int(values["hour12"]) % 12
            if values.get("ampm", "am").lower() == "pm":
                hour += 12
        else:
            hour = int(values.get("hour", 0))

        return datetime(
            year,
            month,
            day,
            hour,
            int(values.get("minute", 0)),
            int(values.get("second", 0)),
            _fraction_to_micros(values.get("fraction")),
        )


def _fraction_to_micros(digits: Optional[str]) -> int:
    if not digits:
        return 0
    digits = digits.lstrip(".")
    if not digits:
        return 0
    return int(digits[:6].ljust(6, "0"))


def _compile(fmt: str) -> Tuple[str, List[Tuple[str, str]]]:
    """Translate a strftime format into a regex with one named group per field."""
    parts: List[str] = []
    groups: List[Tuple[str, str]] = []
    i = 0
    while i < len(fmt):
        ch = fmt[i]
        if ch == "%":
            frac = _FRACTION_RE.match(fmt, i)
            if frac is not None:
                dot, width = frac.groups()
                digits = rf"\d{{{width}}}" if width else r"\d+"
                name = f"g{len(groups)}"
                if dot and not width:
                    # %.f: fraction is optional
                    parts.append(rf"(?P<{name}>\.{digits})?")
                elif dot:
                    parts.append(rf"\.(?P<{name}>{digits})")
                else:
                    parts.append(rf"(?P<{name}>{digits})")
                groups.append((name, "fraction"))
                i = frac.end()
                continue
            if i + 1 >= len(fmt):
                raise ConfigurationError(f"Timestamp format '{fmt}' ends with a lone '%'")
            spec = fmt[i + 1]
            if spec in _COMPOSITES:
                fmt = fmt[:i] + _COMPOSITES[spec] + fmt[i + 2:]
                continue
            if spec not in _SPECIFIERS:
                raise ConfigurationError(f"Unsupported timestamp specifier '%{spec}' in '{fmt}'")
            field, regex = _SPECIFIERS[spec]
            if field is None:
                parts.append(f"(?:{regex})")
            else:
                name = f"g{len(groups)}"
                parts.append(f"(?P<{name}>{regex})")
                groups.append((name, field))
            i += 2
        elif ch.isspace():
            while i < len(fmt) and fmt[i].isspace():
                i += 1
            parts.append(r"\s*")
        else:
            parts.append(re.escape(ch))
            i += 1
    return "".join(parts), groups
