"""Requirement grammar.

    name
    name@path:<path>
    name@git:<url>[@ref:<r>|@branch:<b>|@tag:<t>]
    name@github:<org>/<repo>[@ref:<r>|@branch:<b>|@tag:<t>]
"""

from __future__ import annotations

import re

from kindling.errors import InvalidRequirementError
from kindling.models.component import LocalOrigin, RemoteOrigin, Requirement

_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_SELECTOR_RE = re.compile(r"^(?P<rest>.+)@(?P<kind>ref|branch|tag):(?P<value>[^@]+)$")
_GITHUB_REPO_RE = re.compile(r"^[\w.-]+/[\w.-]+$")

SUPPORTED_FORMATS = (
    "name@path:<path>",
    "name@git:<url>[@ref:<ref>|@branch:<branch>|@tag:<tag>]",
    "name@github:<org>/<repo>[@ref:<ref>|@branch:<branch>|@tag:<tag>]",
)


def parse_requirement(requirement: str) -> Requirement:
    """Parse a requirement string into a name and an optional origin."""
    name, sep, source = requirement.strip().partition("@")
    if not _NAME_RE.match(name):
        raise InvalidRequirementError(f"Invalid component name {name!r} in {requirement!r}")
    if not sep:
        return Requirement(name=name)

    if source.startswith("path:"):
        path = source[len("path:"):]
        if not path:
            raise InvalidRequirementError(f"Missing path in {requirement!r}")
        return Requirement(name=name, origin=LocalOrigin(path=path))

    if source.startswith(("git:", "github:")):
        scheme, _, target = source.partition(":")
        selector = {}
        match = _SELECTOR_RE.match(target)
        if match:
            target = match.group("rest")
            selector[match.group("kind")] = match.group("value")
        if not target:
            raise InvalidRequirementError(f"Missing repository in {requirement!r}")
        if scheme == "github":
            if not _GITHUB_REPO_RE.match(target):
                raise InvalidRequirementError(
                    f"Expected <org>/<repo> after github: in {requirement!r}"
                )
            target = f"https://github.com/{target}.git"
        return Requirement(name=name, origin=RemoteOrigin(url=target, **selector))

    raise InvalidRequirementError(
        f"Unsupported requirement {requirement!r}. Supported formats: "
        + ", ".join(SUPPORTED_FORMATS)
    )
