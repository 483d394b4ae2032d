"""
Backend discovery from flat configuration.

Any number of storage sets can be configured through environment
variables, for example:

    R2_BUCKET=photos            R2_2_BUCKET=archive
    R2_ENDPOINT=https://...     R2_ENDPOINT_2=https://...
    R2_ACCESS_KEY_ID=...        R2_ACCESS_KEY_2=...
    R2_SECRET_ACCESS_KEY=...    R2_SECRET_2=...

Keys are matched against two shapes, PREFIX_PROPERTY[_SUFFIX] and
PREFIX_SUFFIX_PROPERTY. Keys sharing a (prefix, suffix) pair form one
set. The parse is a pure function over a mapping so it can be tested
without touching the process environment.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional

from .models import BackendDescriptor, Credentials, Misconfigured, Ready
from .urls import normalize

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Grammar
# ---------------------------------------------------------------------------

# Tried in order; the first shape whose property is recognized wins.
KEY_SHAPES: tuple[re.Pattern, ...] = (
    re.compile(
        r"^(?P<prefix>[A-Z0-9]+?)_(?P<prop>[A-Z0-9_]+?)(?:_(?P<suffix>[0-9]+))?$",
        re.IGNORECASE,
    ),
    re.compile(
        r"^(?P<prefix>[A-Z0-9]+?)_(?P<suffix>[0-9]+)_(?P<prop>[A-Z0-9_]+)$",
        re.IGNORECASE,
    ),
)

# Canonical property -> accepted spellings, most preferred first.
PROPERTIES: dict[str, tuple[str, ...]] = {
    "BUCKET": ("BUCKET", "BUCKET_NAME"),
    "ENDPOINT": ("ENDPOINT", "ENDPOINT_URL"),
    "ACCESS_KEY_ID": ("ACCESS_KEY_ID", "ACCESS_KEY"),
    "SECRET_ACCESS_KEY": ("SECRET_ACCESS_KEY", "SECRET"),
    "PUBLIC_URL": ("PUBLIC_URL",),
    "REGION": ("REGION",),
    "FRONTEND_ORIGIN": ("FRONTEND_ORIGIN",),
    "ACCOUNT_ID": ("ACCOUNT_ID", "CF_ACCOUNT_ID"),
}

REQUIRED_PROPERTIES: tuple[str, ...] = (
    "BUCKET",
    "ENDPOINT",
    "ACCESS_KEY_ID",
    "SECRET_ACCESS_KEY",
)


def _build_alias_table() -> dict[str, tuple[str, int]]:
    table: dict[str, tuple[str, int]] = {}
    for canonical, spellings in PROPERTIES.items():
        for rank, spelling in enumerate(spellings):
            table[spelling] = (canonical, rank)
            # BUCKETNAME, ACCESSKEYID, ...
            table.setdefault(spelling.replace("_", ""), (canonical, rank))
    return table


_ALIASES = _build_alias_table()


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ResolverDefaults:
    """Values applied when a set leaves an optional property out."""
    region: str = "auto"
    frontend_origin: str = "*"
    force_path_style: bool = False


@dataclass(frozen=True)
class KeyMatch:
    prefix: str
    suffix: str
    spelling: str
    canonical: str
    rank: int


@dataclass
class _Group:
    prefix: str
    suffix: str
    values: dict[str, tuple[int, str]] = field(default_factory=dict)
    seen: set[str] = field(default_factory=set)

    @property
    def id(self) -> str:
        return f"{self.prefix}_{self.suffix}" if self.suffix else self.prefix

    def add(self, match: KeyMatch, value: str) -> None:
        self.seen.add(match.spelling)
        if not value:
            return
        current = self.values.get(match.canonical)
        if current is None or match.rank < current[0]:
            self.values[match.canonical] = (match.rank, value)

    def get(self, canonical: str) -> Optional[str]:
        entry = self.values.get(canonical)
        return entry[1] if entry else None


def match_key(key: str) -> Optional[KeyMatch]:
    """Match one configuration key against the known shapes."""
    key = key.strip()
    for shape in KEY_SHAPES:
        m = shape.match(key)
        if not m:
            continue
        spelling = m.group("prop").upper()
        alias = _ALIASES.get(spelling)
        if alias is None:
            continue
        canonical, rank = alias
        return KeyMatch(
            prefix=m.group("prefix"),
            suffix=m.group("suffix") or "",
            spelling=spelling,
            canonical=canonical,
            rank=rank,
        )
    return None


def resolve_backends(
    environ: Mapping[str, str],
    defaults: ResolverDefaults = ResolverDefaults(),
    prefixes: Iterable[str] = (),
) -> list[BackendDescriptor]:
    """
    Group configuration keys into backend descriptors.

    Every group found is returned, ready or not: a group missing any of
    BUCKET, ENDPOINT, ACCESS_KEY_ID or SECRET_ACCESS_KEY becomes a
    Misconfigured descriptor so the problem shows up in responses.

    Args:
        environ: Flat key/value configuration, usually os.environ.
        defaults: Region, frontend origin and path-style defaults.
        prefixes: When given, only groups with one of these prefixes
            (case-insensitive) are kept.

    Returns:
        Descriptors sorted by id, so identical input gives identical output.
    """
    wanted = {p.strip().upper() for p in prefixes if p.strip()}
    groups: dict[tuple[str, str], _Group] = {}

    for key in sorted(environ):
        match = match_key(key)
        if match is None:
            continue
        if wanted and match.prefix.upper() not in wanted:
            continue
        group = groups.setdefault(
            (match.prefix, match.suffix),
            _Group(prefix=match.prefix, suffix=match.suffix),
        )
        group.add(match, str(environ[key] or "").strip())

    descriptors = [_build_descriptor(group, defaults) for group in groups.values()]
    descriptors.sort(key=lambda d: d.id)
    return descriptors


def _build_descriptor(group: _Group, defaults: ResolverDefaults) -> BackendDescriptor:
    bucket = group.get("BUCKET")
    endpoint = group.get("ENDPOINT")
    access_key = group.get("ACCESS_KEY_ID")
    secret_key = group.get("SECRET_ACCESS_KEY")

    common = dict(
        id=group.id,
        prefix=group.prefix,
        suffix=group.suffix,
        bucket=bucket,
        endpoint=endpoint,
        region=group.get("REGION") or defaults.region,
        public_url_base=normalize(group.get("PUBLIC_URL")),
        frontend_origin=group.get("FRONTEND_ORIGIN") or defaults.frontend_origin,
        account_id=group.get("ACCOUNT_ID"),
        force_path_style=defaults.force_path_style,
    )

    missing = [name for name in REQUIRED_PROPERTIES if not group.get(name)]
    if missing:
        seen = tuple(sorted(group.seen))
        reason = (
            f"Missing required vars ({', '.join(missing)}); need "
            f"{', '.join(REQUIRED_PROPERTIES)}. Found: {', '.join(seen)}"
        )
        logger.warning(
            "Storage set is misconfigured",
            extra={"set": group.id, "missing": missing, "fields_seen": list(seen)},
        )
        return BackendDescriptor(status=Misconfigured(reason=reason, fields_seen=seen), **common)

    return BackendDescriptor(
        status=Ready(),
        credentials=Credentials(access_key_id=access_key, secret_access_key=secret_key),
        **common,
    )
