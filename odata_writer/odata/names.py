"""
odata_writer.odata.names - Fuzzy name resolution
=================================================

Matches host-supplied names against schema element names, tolerating
differences in case and singular/plural form.

Matching runs in tiers and stops at the first tier with any candidate:

1. exact match
2. case-insensitive match
3. case-insensitive match after singular/plural normalization

A tier with more than one candidate is ambiguous and yields no match.
"""

from __future__ import annotations

from typing import Callable, Iterable, List, Optional, Protocol, Sequence, TypeVar

from odata_writer.core.errors import UnresolvableName

T = TypeVar("T")


class Pluralizer(Protocol):
    """Anything that can switch a word between singular and plural."""

    def pluralize(self, word: str) -> str: ...

    def singularize(self, word: str) -> str: ...


_IRREGULAR = {
    "person": "people",
    "child": "children",
    "man": "men",
    "woman": "women",
    "mouse": "mice",
    "goose": "geese",
    "foot": "feet",
    "tooth": "teeth",
}
_IRREGULAR_REVERSE = {v: k for k, v in _IRREGULAR.items()}
_UNCOUNTABLE = {"equipment", "information", "series", "species", "data", "metadata", "news"}


def _match_case(source: str, target: str) -> str:
    if source.isupper():
        return target.upper()
    if source[:1].isupper():
        return target[:1].upper() + target[1:]
    return target


class SimplePluralizer:
    """
    Rule-based English pluralizer.

    Only the trailing word of a PascalCase or snake_case identifier is
    inflected, so ``OrderDetail`` becomes ``OrderDetails``.
    """

    def _split(self, word: str):
        if not word:
            return "", ""
        idx = len(word) - 1
        while idx > 0 and word[idx].isalpha() and not word[idx].isupper():
            idx -= 1
        if word[idx].isupper():
            # all-caps tail such as ORDERS
            while idx > 0 and word[idx - 1].isupper():
                idx -= 1
        elif not word[idx].isalpha():
            idx += 1
        return word[:idx], word[idx:]

    def pluralize(self, word: str) -> str:
        head, tail = self._split(word)
        lower = tail.lower()
        if not lower or lower in _UNCOUNTABLE:
            return word
        if lower in _IRREGULAR:
            return head + _match_case(tail, _IRREGULAR[lower])
        if lower in _IRREGULAR_REVERSE:
            return word
        if lower.endswith("y") and len(lower) > 1 and lower[-2] not in "aeiou":
            return head + tail[:-1] + _match_case(tail[-1], "ies")
        if lower.endswith(("s", "x", "z", "ch", "sh")):
            return head + tail + _match_case(tail[-1], "es")
        return head + tail + _match_case(tail[-1], "s")

    def singularize(self, word: str) -> str:
        head, tail = self._split(word)
        lower = tail.lower()
        if not lower or lower in _UNCOUNTABLE:
            return word
        if lower in _IRREGULAR_REVERSE:
            return head + _match_case(tail, _IRREGULAR_REVERSE[lower])
        if lower in _IRREGULAR:
            return word
        if lower.endswith("ies") and len(lower) > 3:
            return head + tail[:-3] + _match_case(tail[-3], "y")
        if lower.endswith(("sses", "xes", "zes", "ches", "shes")):
            return head + tail[:-2]
        if lower.endswith("s") and not lower.endswith("ss"):
            return head + tail[:-1]
        return word


def _normalized_forms(word: str, pluralizer: Optional[Pluralizer]) -> List[str]:
    forms = [word.lower()]
    if pluralizer is not None:
        for form in (pluralizer.singularize(word), pluralizer.pluralize(word)):
            if form.lower() not in forms:
                forms.append(form.lower())
    return forms


def best_match(
    candidates: Iterable[T],
    name: str,
    key: Callable[[T], str] = lambda x: x,  # type: ignore[assignment,return-value]
    pluralizer: Optional[Pluralizer] = None,
) -> Optional[T]:
    """
    Find the unique candidate whose name matches ``name``.

    Parameters
    ----------
    candidates : iterable
        Schema elements to search
    name : str
        Host-supplied name
    key : callable
        Extracts the element name from a candidate
    pluralizer : Pluralizer, optional
        Enables the singular/plural tier

    Returns
    -------
    object or None
        The matching candidate, or None when there is no match or the
        best tier is ambiguous
    """
    if not name:
        return None
    items: Sequence[T] = list(candidates)

    exact = [c for c in items if key(c) == name]
    if exact:
        return exact[0] if len(exact) == 1 else None

    lowered = name.lower()
    folded = [c for c in items if key(c).lower() == lowered]
    if folded:
        return folded[0] if len(folded) == 1 else None

    if pluralizer is None:
        return None
    wanted = set(_normalized_forms(name, pluralizer))
    inflected = [
        c for c in items
        if wanted.intersection(_normalized_forms(key(c), pluralizer))
    ]
    if len(inflected) == 1:
        return inflected[0]
    return None


class NameResolver:
    """
    Name matcher bound to a pluralizer.

    Parameters
    ----------
    pluralizer : Pluralizer, optional
        Defaults to SimplePluralizer
    use_plurals : bool
        If False, the singular/plural tier is skipped
    """

    def __init__(self, pluralizer: Optional[Pluralizer] = None, *, use_plurals: bool = True) -> None:
        if not use_plurals:
            self.pluralizer: Optional[Pluralizer] = None
        else:
            self.pluralizer = pluralizer or SimplePluralizer()

    def best_match(
        self,
        candidates: Iterable[T],
        name: str,
        key: Callable[[T], str] = lambda x: x.name,  # type: ignore[attr-defined]
    ) -> Optional[T]:
        return best_match(candidates, name, key=key, pluralizer=self.pluralizer)

    def resolve(
        self,
        candidates: Iterable[T],
        name: str,
        container: Optional[str] = None,
        key: Callable[[T], str] = lambda x: x.name,  # type: ignore[attr-defined]
    ) -> T:
        """Like best_match, but raises UnresolvableName instead of returning None."""
        found = self.best_match(candidates, name, key=key)
        if found is None:
            raise UnresolvableName(name, container)
        return found
