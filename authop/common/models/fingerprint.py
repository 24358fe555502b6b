"""Resource-version fingerprint of everything the OAuth server deployment depends on.

Entries keep the order in which dependencies are added. Two fingerprints are
equal only when every contributing `(source, name, resourceVersion)` triple is
the same and in the same position, so a change in any dependency produces a
different fingerprint and therefore a different deployment spec.
"""
import base64
import hashlib
from typing import Iterable, Iterator, List, NamedTuple, Tuple


class VersionEntry(NamedTuple):
    source: str
    name: str
    resource_version: str

    def __str__(self) -> str:
        return f"{self.source}:{self.name}:{self.resource_version}"


class VersionFingerprint:
    """Ordered list of dependency versions."""

    _entries: List[VersionEntry]

    def __init__(self, entries: Iterable[Tuple[str, str, str]] = None) -> None:
        self._entries = []
        for entry in entries or ():
            self.add(*entry)

    def add(self, source: str, name: str, resource_version: str) -> "VersionFingerprint":
        self._entries.append(VersionEntry(source, name, resource_version or ""))
        return self

    def extend(self, entries: Iterable[Tuple[str, str, str]]) -> "VersionFingerprint":
        for entry in entries:
            self.add(*entry)
        return self

    def as_list(self) -> List[str]:
        """Return entries as `source:name:resourceVersion` strings."""
        return [str(entry) for entry in self._entries]

    def digest(self) -> str:
        """Stable digest suitable for an annotation value."""
        hasher = hashlib.sha512()
        for entry in self.as_list():
            hasher.update(entry.encode("utf-8"))
            hasher.update(b"\n")
        return base64.urlsafe_b64encode(hasher.digest()).decode("ascii").rstrip("=")[:43]

    def __iter__(self) -> Iterator[VersionEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VersionFingerprint):
            return NotImplemented
        return self._entries == other._entries

    def __hash__(self) -> int:
        return hash(tuple(self._entries))

    def __repr__(self) -> str:
        return f"VersionFingerprint({self.as_list()!r})"
