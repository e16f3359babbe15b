from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

from gfwpac.rule_parser import (
    KIND_EXACT,
    KIND_KEYWORD,
    KIND_REGEX,
    KIND_SUFFIX,
    LINE_BLANK,
    LINE_COMMENT,
    ParsedRule,
    classify_line,
    format_rule,
    parse_rule,
)


logger = logging.getLogger(__name__)


@dataclass
class RuleSet:
    exact_block: Set[str] = field(default_factory=set)
    suffix_block: Set[str] = field(default_factory=set)
    keywords: Set[str] = field(default_factory=set)
    regex_block: Set[str] = field(default_factory=set)
    regex_whitelist: Set[str] = field(default_factory=set)
    exact_whitelist: Set[str] = field(default_factory=set)
    suffix_whitelist: Set[str] = field(default_factory=set)

    def _bucket(self, rule: ParsedRule) -> Optional[Set[str]]:
        if rule.kind == KIND_EXACT:
            return self.exact_whitelist if rule.whitelist else self.exact_block
        if rule.kind == KIND_SUFFIX:
            return self.suffix_whitelist if rule.whitelist else self.suffix_block
        if rule.kind == KIND_REGEX:
            return self.regex_whitelist if rule.whitelist else self.regex_block
        if rule.kind == KIND_KEYWORD and not rule.whitelist:
            return self.keywords
        # Whitelisted keywords have no container.
        return None

    def add(self, rule: ParsedRule) -> bool:
        """Route a parsed rule into its container. False if it has nowhere to go."""
        bucket = self._bucket(rule)
        if bucket is None:
            return False
        bucket.add(rule.value)
        return True

    def counts(self) -> Dict[str, int]:
        return {
            "exact_block": len(self.exact_block),
            "suffix_block": len(self.suffix_block),
            "keywords": len(self.keywords),
            "regex_block": len(self.regex_block),
            "regex_whitelist": len(self.regex_whitelist),
            "exact_whitelist": len(self.exact_whitelist),
            "suffix_whitelist": len(self.suffix_whitelist),
        }

    def rules(self) -> List[ParsedRule]:
        out: List[ParsedRule] = []
        for kind, whitelist, values in (
            (KIND_EXACT, False, self.exact_block),
            (KIND_SUFFIX, False, self.suffix_block),
            (KIND_KEYWORD, False, self.keywords),
            (KIND_REGEX, False, self.regex_block),
            (KIND_EXACT, True, self.exact_whitelist),
            (KIND_SUFFIX, True, self.suffix_whitelist),
            (KIND_REGEX, True, self.regex_whitelist),
        ):
            out.extend(ParsedRule(kind, v, whitelist) for v in sorted(values))
        return out

    def to_rule_lines(self) -> List[str]:
        return [format_rule(r) for r in self.rules()]


@dataclass
class AggregateStats:
    total: int = 0
    empty: int = 0
    comments: int = 0
    processed: int = 0
    dropped: int = 0
    per_source: Dict[str, Dict[str, int]] = field(default_factory=dict)


def _fold_lines(ruleset: RuleSet, lines: Iterable[str], *, source: str, stats: AggregateStats) -> None:
    counts = {"total": 0, "empty": 0, "comments": 0, "processed": 0, "dropped": 0}

    for raw in lines:
        counts["total"] += 1
        line_class = classify_line(raw)
        if line_class == LINE_BLANK:
            counts["empty"] += 1
            continue
        if line_class == LINE_COMMENT:
            counts["comments"] += 1
            continue

        counts["processed"] += 1
        rule = parse_rule(raw.strip())
        if rule is None or not ruleset.add(rule):
            counts["dropped"] += 1

    stats.total += counts["total"]
    stats.empty += counts["empty"]
    stats.comments += counts["comments"]
    stats.processed += counts["processed"]
    stats.dropped += counts["dropped"]
    stats.per_source[source] = counts


def aggregate(
    feed_lines: Iterable[str],
    user_lines: Optional[Iterable[str]] = None,
    *,
    stats: Optional[AggregateStats] = None,
) -> RuleSet:
    """Fold the feed, then the user rules, into one RuleSet.

    Plain set union: a user rule is stored exactly like a feed rule, and
    whitelist precedence is applied later by the evaluator.
    """
    if stats is None:
        stats = AggregateStats()
    ruleset = RuleSet()

    _fold_lines(ruleset, feed_lines, source="feed", stats=stats)
    if user_lines is not None:
        _fold_lines(ruleset, user_lines, source="user", stats=stats)

    counts = ruleset.counts()
    logger.info("Processed %d rules (%d dropped)", stats.processed, stats.dropped)
    logger.info(
        "  suffix=%d exact=%d keywords=%d white_suffix=%d white_exact=%d regex=%d white_regex=%d",
        counts["suffix_block"],
        counts["exact_block"],
        counts["keywords"],
        counts["suffix_whitelist"],
        counts["exact_whitelist"],
        counts["regex_block"],
        counts["regex_whitelist"],
    )
    return ruleset
