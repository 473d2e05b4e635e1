"""Round-trip Python source model used for rehoming and hashing.

The tree keeps every character of the original file, so rendering a parsed
module reproduces its source exactly. Only the pieces the engine rewrites
(dotted names, string literals and comments) are materialized as nodes.
"""
