"""
Edgesteer - CDN edge steering for HLS playback.

Picks the best edge server for a playback session and rewrites playlist and
segment URIs so the player fetches from it, keeping the edge's sticky
session intact.

## Architecture

- **core.registry**: discovery response parsing into an edge snapshot
- **core.prober**: concurrent latency probing of every edge
- **core.selector**: geography-then-latency edge selection
- **core.uri**: raw-text URI rewriting primitives
- **core.affinity**: per-edge session token harvesting
- **core.failover**: pool-wide reset and signature refresh on rejection
- **core.session**: the session context tying these to the host player

## Quick Start

```python
from edgesteer import EdgeSteerSettings, EdgeSteeringSession

session = EdgeSteeringSession(settings=EdgeSteerSettings(discovery_url=url), player=player)
session.attach()
await session.discover()
segment = await session.resolve_segment_uri(segment_uri)
```
"""

from .core import (
    EdgeRegistry,
    EdgeSelector,
    EdgeSteerSettings,
    EdgeSteeringSession,
    StreamURI,
    load_registry,
)

__version__ = "0.1.0"

__all__ = [
    "EdgeRegistry",
    "EdgeSelector",
    "EdgeSteerSettings",
    "EdgeSteeringSession",
    "StreamURI",
    "load_registry",
]
