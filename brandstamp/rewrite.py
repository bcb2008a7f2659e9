"""Rewrite-table transformation for the image endpoint.

A rewrite table is an ordered sequence of ``RewriteRule(pattern, target)``.
The router tries patterns in order against the request path; the first
match wins and its target query string is filled from the capture groups
through ``$matches[N]`` placeholders.

Each step below is a pure function from one table to a new one. Tables
behave like an ordered mapping keyed on the pattern: when two rules share a
pattern the first position is kept and the later target is used.
"""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Iterable, Mapping
from typing import Any
from urllib.parse import urlparse

from brandstamp.constants import QUERY_VAR
from brandstamp.models import RewriteRule, RouteMatch, Taxonomy

LOGGER = logging.getLogger(__name__)

RuleTable = tuple[RewriteRule, ...]

_ARCHIVE_TARGET = re.compile(r"^index.php\?post_type=([^&%]+)$")
_MATCH_REF = re.compile(r"\$matches\[(\d+)\]")
# highest capture index the router substitutes
_MAX_MATCHES = 20


def as_table(rules: Iterable[Any] | Mapping[str, str]) -> RuleTable:
    """Accept rules, ``(pattern, target)`` pairs or a pattern-to-target mapping."""
    if isinstance(rules, Mapping):
        items: Iterable[Any] = rules.items()
    else:
        items = rules
    table: list[RewriteRule] = []
    for item in items:
        if isinstance(item, RewriteRule):
            table.append(item)
        elif isinstance(item, (tuple, list)) and len(item) == 2:
            table.append(RewriteRule(pattern=item[0], target=item[1]))
        else:
            # kept in place so the rest of the table still routes
            LOGGER.warning("keeping malformed rewrite entry as-is: %r", item)
            table.append(RewriteRule(pattern=item, target=None))  # type: ignore[arg-type]
    return tuple(table)


def merge_tables(*tables: Iterable[RewriteRule]) -> RuleTable:
    """Concatenate tables with ordered-mapping semantics on the pattern.

    Rules whose pattern cannot be a mapping key stay at their position.
    """
    merged: list[RewriteRule] = []
    positions: dict[Any, int] = {}
    for table in tables:
        for rule in table:
            try:
                index = positions.get(rule.pattern)
            except TypeError:
                merged.append(rule)
                continue
            if index is None:
                positions[rule.pattern] = len(merged)
                merged.append(rule)
            else:
                merged[index] = rule
    return tuple(merged)


def _is_well_formed(rule: RewriteRule) -> bool:
    return isinstance(rule.pattern, str) and isinstance(rule.target, str)


def permalink_prefix(permalink_structure: str | None) -> str:
    """Static front of a permalink structure, e.g. ``/blog/%postname%/`` gives ``blog/``."""
    front = (permalink_structure or "").split("/%", 1)[0]
    return (front.rstrip("/\\") + "/").lstrip("/")


def inject_archive_rules(table: RuleTable, endpoint: str, query_var: str = QUERY_VAR) -> RuleTable:
    """Add an endpoint rule for every post-type archive target, ahead of the originals."""
    archives: list[RewriteRule] = []
    for rule in table:
        if not _is_well_formed(rule):
            continue
        match = _ARCHIVE_TARGET.match(rule.target)
        if match:
            archives.append(
                RewriteRule(
                    pattern=f"{match.group(1)}/{endpoint}(/(.*))?/?$",
                    target=f"{rule.target}&{query_var}=$matches[2]",
                )
            )
    if archives:
        LOGGER.debug("adding %d archive endpoint rules", len(archives))
    return merge_tables(archives, table)


def inject_taxonomy_rules(
    table: RuleTable,
    endpoint: str,
    taxonomies: Iterable[Taxonomy],
    permalink_structure: str | None = "",
    query_var: str = QUERY_VAR,
) -> RuleTable:
    """Add an endpoint rule for every public custom taxonomy, ahead of the originals."""
    prefix = permalink_prefix(permalink_structure)
    synthesized: list[RewriteRule] = []
    for taxonomy in taxonomies:
        if not taxonomy.public or taxonomy.builtin:
            continue
        front = prefix if taxonomy.with_front else ""
        synthesized.append(
            RewriteRule(
                pattern=f"{front}{taxonomy.slug}/(.+?)/{endpoint}(/(.*))?/?$",
                target=f"index.php?{taxonomy.name}=$matches[1]&{query_var}=$matches[3]",
            )
        )
    return merge_tables(synthesized, table)


def _collapse_target(target: str, query_var: str) -> str:
    marker = f"{query_var}="
    if marker in target:
        return target.split(marker, 1)[0] + f"{query_var}=1"
    separator = "&" if "?" in target else "?"
    return f"{target}{separator}{query_var}=1"


def collapse_endpoint_captures(table: RuleTable, endpoint: str, query_var: str = QUERY_VAR) -> RuleTable:
    """Turn the endpoint into a presence flag.

    Patterns containing the endpoint name are cut right after it; their
    targets set the query var to a literal ``1``.
    """
    collapsed: list[RewriteRule] = []
    for rule in table:
        if not _is_well_formed(rule):
            LOGGER.warning("passing malformed rewrite rule through: %r", rule)
            collapsed.append(rule)
            continue
        if endpoint and endpoint in rule.pattern:
            rule = RewriteRule(
                pattern=rule.pattern.split(endpoint, 1)[0] + endpoint + "/?$",
                target=_collapse_target(rule.target, query_var),
            )
        collapsed.append(rule)
    return merge_tables(collapsed)


def prioritize_endpoint_rules(table: RuleTable, endpoint: str) -> RuleTable:
    """Stable partition: endpoint rules first, everything else after."""
    top: list[RewriteRule] = []
    bottom: list[RewriteRule] = []
    for rule in table:
        if isinstance(rule.pattern, str) and endpoint and endpoint in rule.pattern:
            top.append(rule)
        else:
            bottom.append(rule)
    return merge_tables(top, bottom)


def transform_rewrite_rules(
    rules: Iterable[Any] | Mapping[str, str],
    endpoint: str,
    *,
    taxonomies: Iterable[Taxonomy] = (),
    permalink_structure: str | None = "",
    query_var: str = QUERY_VAR,
) -> RuleTable:
    table = as_table(rules)
    table = inject_archive_rules(table, endpoint, query_var)
    table = inject_taxonomy_rules(table, endpoint, taxonomies, permalink_structure, query_var)
    table = collapse_endpoint_captures(table, endpoint, query_var)
    return prioritize_endpoint_rules(table, endpoint)


def needs_flush(based_on: str | None, endpoint: str) -> bool:
    """True when the stored table was built for another endpoint name."""
    return based_on != endpoint


class RewriteTableCache:
    """Holds one transformed table until the inputs change or it is invalidated.

    Readers get whatever tuple is published; a rebuild is done aside and then
    swapped in as a whole.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entry: tuple[tuple[Any, ...], RuleTable] | None = None

    @staticmethod
    def _key(endpoint: str, permalink_structure: str | None, taxonomies: Iterable[Taxonomy]) -> tuple[Any, ...]:
        return (endpoint, permalink_structure or "", tuple(taxonomies))

    @property
    def based_on(self) -> str | None:
        entry = self._entry
        return None if entry is None else entry[0][0]

    @property
    def table(self) -> RuleTable | None:
        entry = self._entry
        return None if entry is None else entry[1]

    def get(
        self,
        rules: Iterable[Any] | Mapping[str, str],
        endpoint: str,
        *,
        taxonomies: Iterable[Taxonomy] = (),
        permalink_structure: str | None = "",
        query_var: str = QUERY_VAR,
    ) -> RuleTable:
        taxonomies = tuple(taxonomies)
        key = self._key(endpoint, permalink_structure, taxonomies)
        entry = self._entry
        if entry is not None and entry[0] == key:
            return entry[1]
        with self._lock:
            entry = self._entry
            if entry is not None and entry[0] == key:
                return entry[1]
            LOGGER.info("rebuilding rewrite table for endpoint %s", endpoint)
            fresh = transform_rewrite_rules(
                rules,
                endpoint,
                taxonomies=taxonomies,
                permalink_structure=permalink_structure,
                query_var=query_var,
            )
            self._entry = (key, fresh)
            return fresh

    def invalidate(self) -> None:
        with self._lock:
            self._entry = None


def _fill_target(target: str, groups: list[str | None]) -> str:
    last = max((index for index, group in enumerate(groups) if group is not None), default=0)

    def substitute(match: re.Match[str]) -> str:
        index = int(match.group(1))
        if index <= last:
            return groups[index] or ""
        return match.group(0)

    filled = _MATCH_REF.sub(substitute, target)
    for index in range(last + 1, _MAX_MATCHES + 1):
        filled = re.sub(rf"[^?&]+=\$matches\[{index}\]", "", filled)
    return filled.strip().strip("&?")


def match_url(
    table: Iterable[RewriteRule],
    url: str,
    *,
    endpoint: str,
    permalink_structure: str | None = "",
    query_var: str = QUERY_VAR,
) -> RouteMatch | None:
    """Find the rule the router would pick for ``url``.

    Without a permalink structure every URL is a plain query string and is
    reported as-is.
    """
    if not permalink_structure:
        return RouteMatch(index=None, rule=None, target=url, has_query_var=query_var in url)

    path = urlparse(url).path
    is_front_page = False
    if not path.strip("/") or path.strip("/") == endpoint:
        path = "/" + path.strip("/")
        is_front_page = True

    for index, rule in enumerate(table):
        if not _is_well_formed(rule):
            continue
        try:
            match = re.match("^/" + rule.pattern, path, re.IGNORECASE)
        except re.error as exc:
            LOGGER.warning("skipping rewrite rule %r: %s", rule.pattern, exc)
            continue
        if match is None:
            continue
        target = _fill_target(rule.target, [match.group(0), *match.groups()])
        return RouteMatch(
            index=index,
            rule=rule.pattern,
            target="index.php?" if is_front_page else target,
            has_query_var=query_var in target,
        )
    return None
