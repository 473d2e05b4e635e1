"""Content hashing and tracking markers.

A tracked file starts with a two-line marker::

    #! kindling:<hash>
    #! kindling: DO NOT EDIT this file. Run `kindling unlock <name>` to stop syncing.

Hashes are always computed with the marker removed, so re-locking a file
that already carries one yields the same hash.
"""

from __future__ import annotations

import hashlib
from typing import Mapping

from kindling.syntax.tree import Comment, Module, Text

MARKER_PREFIX = "#! kindling"


def strip_marker(module: Module) -> Module:
    """Remove any leading tracking-marker comment lines."""
    nodes = list(module.nodes)
    while nodes and isinstance(nodes[0], Comment) and nodes[0].text.startswith(MARKER_PREFIX):
        nodes.pop(0)
        if nodes and isinstance(nodes[0], Text):
            rest = nodes[0].text
            for newline in ("\r\n", "\n"):
                if rest.startswith(newline):
                    rest = rest[len(newline):]
                    break
            if rest:
                nodes[0] = Text(rest)
            else:
                nodes.pop(0)
    return Module.of(nodes)


def compute_hash(module: Module) -> str:
    """SHA-256 of the module's source with its tracking marker removed."""
    source = strip_marker(module).render()
    return hashlib.sha256(source.encode("utf-8")).hexdigest()


def embed_marker(module: Module, content_hash: str, component_name: str) -> Module:
    """Prepend the tracking marker, replacing any existing one."""
    header = (
        Comment(f"{MARKER_PREFIX}:{content_hash}"),
        Text("\n"),
        Comment(
            f"{MARKER_PREFIX}: DO NOT EDIT this file. "
            f"Run `kindling unlock {component_name}` to stop syncing."
        ),
        Text("\n"),
    )
    return Module.of(header + strip_marker(module).nodes)


def aggregate_hash(files: Mapping[str, str]) -> str:
    """SHA-256 of the per-file hashes concatenated in path-sorted order."""
    joined = "".join(files[path] for path in sorted(files))
    return hashlib.sha256(joined.encode("utf-8")).hexdigest()
