"""Package manifest (``package.json``) access.

The top-level version field is rewritten in place so key order,
indentation and the trailing newline survive untouched.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path

from gw.core.result import Err, Ok, Result
from gw.git.repository import Repository
from gw.platform.files import atomic_write_text
from gw.release.errors import ReleaseError
from gw.release.semver import SemVer, parse_version

__all__ = [
    "Manifest",
    "current_version",
    "read_manifest",
    "update_manifest_version",
]

_VERSION_VALUE_RE = re.compile(r'\s*:\s*"([^"\\]*)"')
_FALLBACK_VERSION = "0.0.0"


def _string_end(text: str, start: int) -> int:
    """Index of the quote closing the JSON string opened at ``start``."""
    i = start + 1
    while i < len(text):
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch == '"':
            return i
        i += 1
    return len(text)


def _top_level_version_span(text: str) -> tuple[int, int] | None:
    """Span of the top-level ``"version"`` string value, skipping nested objects."""
    depth = 0
    i = 0
    while i < len(text):
        ch = text[i]
        if ch == '"':
            end = _string_end(text, i)
            if depth == 1 and text[i + 1 : end] == "version":
                m = _VERSION_VALUE_RE.match(text, end + 1)
                if m is not None:
                    return m.span(1)
            i = end + 1
            continue
        if ch in "{[":
            depth += 1
        elif ch in "}]":
            depth -= 1
        i += 1
    return None


@dataclass(frozen=True, slots=True)
class Manifest:
    path: Path
    name: str | None
    version: str | None
    private: bool

    @property
    def publishable(self) -> bool:
        """A named, non-private package can go to the registry."""
        return bool(self.name) and not self.private


def read_manifest(path: Path) -> Result[Manifest, ReleaseError]:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return Err(ReleaseError(kind="manifest_invalid", message=f"manifest not found: {path}"))
    except (OSError, json.JSONDecodeError) as e:
        return Err(ReleaseError(kind="manifest_invalid", message=f"cannot read manifest {path}: {e}"))

    if not isinstance(raw, dict):
        return Err(ReleaseError(kind="manifest_invalid", message=f"manifest is not an object: {path}"))

    name = raw.get("name")
    version = raw.get("version")
    return Ok(
        Manifest(
            path=path,
            name=name if isinstance(name, str) and name else None,
            version=version if isinstance(version, str) and version else None,
            private=raw.get("private") is True,
        )
    )


def update_manifest_version(path: Path, version: str) -> Result[None, ReleaseError]:
    """Replace the top-level version value, leaving every other byte as is."""
    if parse_version(version) is None:
        return Err(ReleaseError(kind="version_invalid", message=f"invalid semantic version: {version!r}"))

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        return Err(ReleaseError(kind="manifest_invalid", message=f"Failed to update package version: {e}"))

    span = _top_level_version_span(text)
    if span is None:
        return Err(
            ReleaseError(
                kind="manifest_invalid",
                message=f"Failed to update package version: no version field in {path.name}",
            )
        )

    start, end = span
    updated = text[:start] + version + text[end:]
    atomic_write_text(path, updated)
    return Ok(None)


def _latest_semver_tag(repo: Repository, tag_prefix: str) -> SemVer | None:
    match repo.tags(f"{tag_prefix}*", merged=True):
        case Err(_):
            return None
        case Ok(tags):
            parsed = [v for v in (parse_version(tag[len(tag_prefix) :]) for tag in tags) if v is not None]
            return max(parsed, key=SemVer.sort_key, default=None)


def current_version(repo: Repository, manifest_path: Path, *, tag_prefix: str = "v") -> str:
    """Current released version. Never fails.

    Candidates are the latest semver tag (prefix stripped) and the manifest
    version. The higher one wins, the tag on a tie; ``0.0.0`` when neither
    is available.
    """
    tagged = _latest_semver_tag(repo, tag_prefix)

    declared: SemVer | None = None
    match read_manifest(manifest_path):
        case Ok(manifest) if manifest.version is not None:
            declared = parse_version(manifest.version)
        case _:
            pass

    if tagged is None and declared is None:
        return _FALLBACK_VERSION
    if declared is None:
        return str(tagged)
    if tagged is None:
        return str(declared)
    return str(declared if declared.sort_key() > tagged.sort_key() else tagged)
