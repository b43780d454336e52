from .markdown_autolinker import (
    Candidate,
    MarkdownAutolinker,
    autolink_entities,
    build_candidate_list,
    is_eligible,
    is_protected_line,
)

__all__ = [
    "Candidate",
    "MarkdownAutolinker",
    "autolink_entities",
    "build_candidate_list",
    "is_eligible",
    "is_protected_line",
]
