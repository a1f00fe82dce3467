"""Cluster issues on nearby blocks into re-translation groups."""

from __future__ import annotations

from collections.abc import Iterable

from subloom_schemas.verification import TranslationIssue


def group_issues(
    issues: Iterable[TranslationIssue], gap: int = 2
) -> list[list[TranslationIssue]]:
    """Group issues whose consecutive block numbers differ by at most ``gap``.

    Args:
        issues: Issues in any order.
        gap: Maximum block-number difference inside a group.

    Returns:
        list[list[TranslationIssue]]: Groups ordered by block number.

    Raises:
        ValueError: If gap is not positive.
    """
    if gap < 1:
        raise ValueError("gap must be at least 1")
    groups: list[list[TranslationIssue]] = []
    for issue in sorted(issues, key=lambda item: item.block_number):
        if groups and issue.block_number - groups[-1][-1].block_number <= gap:
            groups[-1].append(issue)
        else:
            groups.append([issue])
    return groups
