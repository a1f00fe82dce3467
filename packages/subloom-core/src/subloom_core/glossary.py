"""Job-wide glossary of recurring terms."""

from __future__ import annotations

from collections.abc import Iterator, Mapping


class Glossary:
    """Append-only source term to translated term mapping.

    The first translation recorded for a term wins; later proposals for the
    same term are ignored.
    """

    def __init__(self, initial: Mapping[str, str] | None = None) -> None:
        """Initialize the glossary.

        Args:
            initial: Optional seed terms, applied with first-write-wins.
        """
        self._terms: dict[str, str] = {}
        if initial:
            self.merge(initial)

    def __len__(self) -> int:
        return len(self._terms)

    def __contains__(self, term: object) -> bool:
        return term in self._terms

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._terms))

    def get(self, term: str) -> str | None:
        """Return the recorded translation for a term, if any."""
        return self._terms.get(term)

    def merge(self, terms: Mapping[str, str]) -> dict[str, str]:
        """Record new terms without overwriting existing ones.

        Args:
            terms: Proposed source to target terms.

        Returns:
            dict[str, str]: The terms that were actually added.
        """
        added: dict[str, str] = {}
        for source, target in terms.items():
            source = source.strip()
            target = target.strip()
            if not source or not target or source in self._terms:
                continue
            self._terms[source] = target
            added[source] = target
        return added

    def snapshot(self) -> dict[str, str]:
        """Return a copy of the recorded terms."""
        return dict(self._terms)

    def clear(self) -> None:
        """Drop every recorded term."""
        self._terms.clear()
