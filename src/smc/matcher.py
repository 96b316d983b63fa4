"""Query matching over extracted message text."""

import re

from smc.exceptions import InvalidQueryError


class QueryMatcher:
    """Compiled set of query terms.

    Plain terms match as case-insensitive substrings; regex terms match if the
    pattern is found anywhere in the text. In OR mode the first declared term
    that matches wins. In AND mode every term must match the full text on its
    own, in any order, overlapping or not.
    """

    def __init__(self, queries: list[str], is_regex: bool = False, and_mode: bool = False):
        if not queries:
            raise InvalidQueryError("Search query cannot be empty")

        self.queries = list(queries)
        self.is_regex = is_regex
        self.and_mode = and_mode
        self.patterns: list[re.Pattern[str]] = []
        self.plains: list[str] = []

        if is_regex:
            for query in queries:
                try:
                    self.patterns.append(re.compile(query))
                except re.error as e:
                    raise InvalidQueryError(f"Invalid regex '{query}': {e}") from e
        else:
            self.plains = [q.lower() for q in queries]

    def match(self, text: str) -> str | None:
        """Return the label of the match, or None.

        The label is the lowercased term for plain queries and the matched text
        for regex queries; AND mode joins the labels with " + ".
        """
        if self.and_mode:
            return self._all_match(text)

        if self.is_regex:
            for pattern in self.patterns:
                found = pattern.search(text)
                if found:
                    return found.group(0)
            return None

        lower = text.lower()
        for query in self.plains:
            if query in lower:
                return query
        return None

    def _all_match(self, text: str) -> str | None:
        if self.is_regex:
            labels = []
            for pattern in self.patterns:
                found = pattern.search(text)
                if found is None:
                    return None
                labels.append(found.group(0))
            return " + ".join(labels)

        lower = text.lower()
        if all(query in lower for query in self.plains):
            return " + ".join(self.plains)
        return None
