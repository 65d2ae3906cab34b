"""Container image reference parsing.

Accepted forms::

    <registry>/<repository>
    <registry>/<repository>:<tag>
    <registry>/<repository>@<digest>
    <registry>/<repository>:<tag>@<digest>   (tag is ignored)

A name without any ``/`` is a bare repository (``r1``, ``r1:v1``) with no
registry.  Scope matching only ever looks at ``<registry>/<repository>``,
or at the bare repository when there is no registry.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from scopegate.exceptions import ImageReferenceError

_LABEL = r"[a-zA-Z0-9](?:[a-zA-Z0-9-]*[a-zA-Z0-9])?"
_REGISTRY_RE = re.compile(rf"^(?:{_LABEL}(?:\.{_LABEL})*|\[[0-9a-fA-F:.]+\])(?::[0-9]+)?$")

_PATH_COMPONENT = r"[a-z0-9]+(?:(?:[._]|__|[-]*)[a-z0-9]+)*"
_REPOSITORY_RE = re.compile(rf"^{_PATH_COMPONENT}(?:/{_PATH_COMPONENT})*$")

_TAG_RE = re.compile(r"^[\w][\w.-]{0,127}$")
_DIGEST_RE = re.compile(r"^[a-z0-9]+(?:[.+_-][a-z0-9]+)*:[a-zA-Z0-9=_-]+$")
_DIGEST_HEX_LENGTHS: dict[str, int] = {"sha256": 64, "sha384": 96, "sha512": 128}


@dataclass(frozen=True, slots=True)
class ImageReference:
    registry: str
    repository: str
    reference: str = ""
    """Tag or digest; empty for a bare repository."""

    @property
    def is_digest(self) -> bool:
        return ":" in self.reference

    def without_reference(self) -> ImageReference:
        return ImageReference(self.registry, self.repository)

    def __str__(self) -> str:
        base = f"{self.registry}/{self.repository}" if self.registry else self.repository
        if not self.reference:
            return base
        if self.is_digest:
            return f"{base}@{self.reference}"
        return f"{base}:{self.reference}"


def _validate_digest(name: str, digest: str) -> None:
    if not _DIGEST_RE.match(digest):
        raise ImageReferenceError(f"invalid digest {digest!r} in {name!r}")
    algorithm, encoded = digest.split(":", 1)
    expected = _DIGEST_HEX_LENGTHS.get(algorithm)
    if expected is None:
        raise ImageReferenceError(f"unsupported digest algorithm {algorithm!r} in {name!r}")
    if not re.fullmatch(rf"[a-f0-9]{{{expected}}}", encoded):
        raise ImageReferenceError(f"invalid {algorithm} digest {digest!r} in {name!r}")


def parse_reference(name: str) -> ImageReference:
    """Parse *name* into an :class:`ImageReference`.

    Raises :class:`ImageReferenceError` when any component is invalid.
    """
    registry, sep, path = name.partition("/")
    if not sep:
        registry, path = "", name
    if not path:
        raise ImageReferenceError(f"invalid reference {name!r}: missing repository")

    reference = ""
    is_digest = False
    if "@" in path:
        repository, _, reference = path.partition("@")
        # tag@digest: the digest wins
        repository = repository.split(":", 1)[0]
        is_digest = True
    elif ":" in path:
        repository, _, reference = path.partition(":")
    else:
        repository = path

    if sep and not _REGISTRY_RE.match(registry):
        raise ImageReferenceError(f"invalid reference {name!r}: invalid registry {registry!r}")
    if not _REPOSITORY_RE.match(repository):
        raise ImageReferenceError(f"invalid reference {name!r}: invalid repository {repository!r}")
    if is_digest:
        _validate_digest(name, reference)
    elif reference and not _TAG_RE.match(reference):
        raise ImageReferenceError(f"invalid reference {name!r}: invalid tag {reference!r}")

    return ImageReference(registry=registry, repository=repository, reference=reference)


def repository_of(name: str) -> str:
    """Return ``registry/repository`` (or the bare repository) for *name*, dropping any tag or digest."""
    return str(parse_reference(name).without_reference())
