"""
Semantic type aliases for edgesteer.

These aliases replace raw str/float annotations in the registry, selector
and rewriting code with names that say what the value means.
"""

from typing import TypeAlias

# Time and measurement types
DurationSeconds: TypeAlias = float
LatencyMs: TypeAlias = float
DistanceKm: TypeAlias = float
Degrees: TypeAlias = float

# Network types
Hostname: TypeAlias = str
PortString: TypeAlias = str
UrlString: TypeAlias = str
QueryKey: TypeAlias = str
QueryValue: TypeAlias = str
HttpStatus: TypeAlias = int

# Geography
CountryCode: TypeAlias = str

# Session tokens
SessionToken: TypeAlias = str
AuthSignature: TypeAlias = str
