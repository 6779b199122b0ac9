from __future__ import annotations

from ..models.processing_result import CombineResult, MatchResult

"""SUMMARY line rendering.

Formats (one line each, fields separated by single spaces):

SUMMARY stage=combine groups={n} success={s} failed={f} rows={r} elapsed_sec={e}
SUMMARY stage=match groups={n} matched={m} unmatched={u} blank={b} missing_id={i} files={w}
"""

__all__ = [
    "format_seconds",
    "render_combine_summary",
    "render_match_summary",
]


def format_seconds(seconds: float) -> str:
    """Render seconds without scientific notation or trailing zeros.

    >>> format_seconds(2.0)
    '2'
    >>> format_seconds(0.000123)
    '0.000123'
    """
    if seconds == 0:
        return "0"
    if seconds == int(seconds):
        return str(int(seconds))
    if seconds < 0.01:
        return f"{seconds:.6f}".rstrip("0").rstrip(".")
    return f"{seconds:.3f}".rstrip("0").rstrip(".")


def render_combine_summary(result: CombineResult) -> str:
    return (
        f"SUMMARY stage=combine "
        f"groups={result.total_groups} "
        f"success={len(result.succeeded_groups)} "
        f"failed={len(result.failed_groups)} "
        f"rows={result.total_rows} "
        f"elapsed_sec={format_seconds(result.elapsed_seconds)}"
    )


def render_match_summary(result: MatchResult) -> str:
    counts = result.counts
    files = len(result.matched_paths) + (1 if result.missing_report_path is not None else 0)
    return (
        f"SUMMARY stage=match "
        f"groups={result.groups} "
        f"matched={counts.matched} "
        f"unmatched={counts.unmatched} "
        f"blank={counts.blank} "
        f"missing_id={counts.missing_id} "
        f"files={files}"
    )
