from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Tuple

from gfwpac.ruleset import RuleSet


@dataclass(frozen=True)
class MatchIndex:
    """Lookup tables consulted by the evaluator and serialized into the PAC.

    Suffix sets hold the rule domains as written; subdomain matching walks
    the query host's parent labels instead of expanding these sets.
    """

    exact_block: FrozenSet[str]
    exact_whitelist: FrozenSet[str]
    suffix_block: FrozenSet[str]
    suffix_whitelist: FrozenSet[str]
    keywords: Tuple[str, ...]
    # Carried for reporting only; the evaluator does not read them.
    regex_block: Tuple[str, ...] = ()
    regex_whitelist: Tuple[str, ...] = ()


def build_index(ruleset: RuleSet) -> MatchIndex:
    return MatchIndex(
        exact_block=frozenset(ruleset.exact_block),
        exact_whitelist=frozenset(ruleset.exact_whitelist),
        suffix_block=frozenset(ruleset.suffix_block),
        suffix_whitelist=frozenset(ruleset.suffix_whitelist),
        keywords=tuple(sorted(ruleset.keywords)),
        regex_block=tuple(sorted(ruleset.regex_block)),
        regex_whitelist=tuple(sorted(ruleset.regex_whitelist)),
    )
