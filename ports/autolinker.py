"""
Port: Autolinker
Responsibility: annotating document source with links to entity pages.
"""
from typing import Mapping, Optional, Protocol, runtime_checkable

from contracts import AutolinkConfig, AutolinkResult, EntityRecord


@runtime_checkable
class Autolinker(Protocol):
    def autolink(
        self,
        source: str,
        dictionary: Mapping[str, EntityRecord],
        config: Optional[AutolinkConfig] = None,
    ) -> AutolinkResult:
        """
        Links the first eligible mention of each entity in `source`.
        Protected zones (headings, code, existing links, no-link spans)
        are returned byte-identical. Pure: no I/O, no shared state.
        """
        ...
