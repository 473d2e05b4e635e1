"""Namespace rehoming — move component identifiers under the host's package.

Given the component namespace ``P`` and the host package ``Q``, every dotted
name whose leading segment matches ``P`` gets ``Q`` in its place, with the
rest of the path untouched. String literals equal to the component's name
become the host's name, which covers configuration keys and the like.
"""

from __future__ import annotations

from dataclasses import dataclass

from kindling.project import PrefixMatch
from kindling.syntax.tree import DottedName, Module, Node, String, transform


@dataclass(frozen=True)
class Rehoming:
    """The rewrite applied to every imported file."""

    old_prefix: str
    new_prefix: str
    old_name: str
    new_name: str
    match: PrefixMatch = PrefixMatch.SEGMENT

    def rehome_segment(self, segment: str) -> str:
        if self.match == PrefixMatch.SEGMENT:
            return self.new_prefix if segment == self.old_prefix else segment
        if segment.startswith(self.old_prefix):
            return self.new_prefix + segment[len(self.old_prefix):]
        return segment

    def rehome_path(self, segments: tuple[str, ...]) -> tuple[str, ...]:
        """Rewrite the leading segment of an identifier path."""
        if not segments:
            return segments
        return (self.rehome_segment(segments[0]),) + segments[1:]

    def rehome_node(self, node: Node) -> Node:
        if isinstance(node, DottedName):
            segments = self.rehome_path(node.segments)
            return node if segments == node.segments else DottedName(segments)
        if isinstance(node, String) and node.value == self.old_name:
            return node.with_value(self.new_name)
        return node

    def apply(self, module: Module) -> Module:
        return transform(module, self.rehome_node)
