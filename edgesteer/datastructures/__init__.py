"""
Edgesteer shared datastructures.

Semantic type aliases used across the edge registry, selector and URI
rewriting code live here so the rest of the package can stay readable.
"""
