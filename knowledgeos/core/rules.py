"""Rule engine: user preferences applied to surfaced knowledge.

Rules live in <root>/rules.yaml and are applied in stored order:

- exclude / never_mention: every match is removed
- prefer: every match is replaced with the rule's replacement, taken
  literally: group references such as $1 or \\1 are not expanded
- always_mention: if nothing matches, a trailing note naming the pattern
  is appended

Validation and application are separate stages: add_rule() refuses invalid
rules, and apply() recompiles each stored rule, failing the whole call if
one no longer compiles.
"""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from pathlib import Path
from typing import Callable, Dict, List, Union

import yaml
from ulid import ULID

from knowledgeos.core.errors import (
    EmptyPatternError,
    InvalidPatternError,
    InvalidRuleTypeError,
    MalformedDocumentError,
    MissingReplacementError,
    NotFoundError,
)
from knowledgeos.core.locks import ReadWriteLock
from knowledgeos.core.models import Rule, RuleType
from knowledgeos.core.time import utc_now


logger = logging.getLogger(__name__)

RULES_FILENAME = "rules.yaml"

RULES_FILE_HEADER = """# User Preferences and Rules
#
# Rule types:
#   - exclude: Remove matching content
#   - prefer: Replace with preferred alternative
#   - always_mention: Add a note when the pattern is missing
#   - never_mention: Never include matching content
#
"""


def _remove(text: str, rule: Rule, regex: re.Pattern) -> str:
    return regex.sub("", text)


def _prefer(text: str, rule: Rule, regex: re.Pattern) -> str:
    return regex.sub(lambda _match: rule.replacement, text)


def _always_mention(text: str, rule: Rule, regex: re.Pattern) -> str:
    if regex.search(text):
        return text
    return text + f"\n\nNote: Consider {rule.pattern}."


TRANSFORMS: Dict[RuleType, Callable[[str, Rule, re.Pattern], str]] = {
    RuleType.EXCLUDE: _remove,
    RuleType.NEVER_MENTION: _remove,
    RuleType.PREFER: _prefer,
    RuleType.ALWAYS_MENTION: _always_mention,
}


class RuleEngine:
    """
    Manages and applies user-defined rules.

    The rule list is guarded by a reader/writer lock; apply() works on a
    snapshot so concurrent add/remove calls cannot change a running apply.
    """

    def __init__(self, root: Union[str, Path]):
        """
        Load rules from <root>/rules.yaml (missing file = no rules).

        Raises:
            MalformedDocumentError: the rules file exists but cannot be parsed
        """
        self.rules_file = Path(root) / RULES_FILENAME
        self._rules: List[Rule] = []
        self._lock = ReadWriteLock()
        self._load()

    def _load(self) -> None:
        if not self.rules_file.exists():
            return

        try:
            data = yaml.safe_load(self.rules_file.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            raise MalformedDocumentError(
                f"failed to parse rules YAML: {e}", path=str(self.rules_file)
            ) from e

        if data is None:
            return
        if not isinstance(data, dict) or not isinstance(data.get("rules") or [], list):
            raise MalformedDocumentError("rules file must contain a 'rules' list", path=str(self.rules_file))

        try:
            rules = [Rule.from_dict(item) for item in (data.get("rules") or [])]
        except (AttributeError, TypeError, ValueError) as e:
            raise MalformedDocumentError(f"invalid rule entry: {e}", path=str(self.rules_file)) from e

        with self._lock.write_locked():
            self._rules = rules
        logger.debug(f"Loaded {len(rules)} rules from {self.rules_file}")

    def _save(self) -> None:
        """Write the rule list; caller holds the write lock."""
        payload = {"rules": [rule.to_dict() for rule in self._rules]}
        self.rules_file.parent.mkdir(parents=True, exist_ok=True)
        self.rules_file.write_text(
            RULES_FILE_HEADER + yaml.safe_dump(payload, sort_keys=False, allow_unicode=True),
            encoding="utf-8",
        )

    @staticmethod
    def validate(rule: Rule) -> None:
        """
        Check a rule before it is stored.

        Raises:
            InvalidRuleTypeError: type is not one of RuleType
            EmptyPatternError: pattern is empty
            InvalidPatternError: pattern does not compile
            MissingReplacementError: prefer rule without replacement
        """
        if rule.type not in RuleType.values():
            raise InvalidRuleTypeError(str(rule.type))

        if not rule.pattern:
            raise EmptyPatternError()

        try:
            re.compile(rule.pattern)
        except re.error as e:
            raise InvalidPatternError(rule.pattern, str(e)) from e

        if rule.type == RuleType.PREFER.value and not rule.replacement:
            raise MissingReplacementError()

    def add_rule(self, rule: Rule) -> Rule:
        """Validate, fill in id / created_at if missing, append and persist."""
        if isinstance(rule.type, RuleType):
            rule = replace(rule, type=rule.type.value)
        self.validate(rule)

        rule = replace(
            rule,
            id=rule.id or str(ULID()),
            created_at=rule.created_at or utc_now(),
        )

        with self._lock.write_locked():
            self._rules.append(rule)
            self._save()

        logger.info(f"Added {rule.type} rule {rule.id}: {rule.pattern}")
        return replace(rule)

    def remove_rule(self, rule_id: str) -> None:
        """
        Raises:
            NotFoundError: no rule has that id
        """
        with self._lock.write_locked():
            remaining = [r for r in self._rules if r.id != rule_id]
            if len(remaining) == len(self._rules):
                raise NotFoundError("rule", rule_id)
            self._rules = remaining
            self._save()

        logger.info(f"Removed rule {rule_id}")

    def list_rules(self) -> List[Rule]:
        """All rules in stored order (copies)"""
        with self._lock.read_locked():
            return [replace(r) for r in self._rules]

    def get_rule(self, rule_id: str) -> Rule:
        with self._lock.read_locked():
            for rule in self._rules:
                if rule.id == rule_id:
                    return replace(rule)
        raise NotFoundError("rule", rule_id)

    def resolve_rule_id(self, prefix: str) -> str:
        """
        Expand an id prefix (as shown by the CLI) to a full rule id.

        Raises:
            NotFoundError: no rule, or more than one rule, matches
        """
        with self._lock.read_locked():
            matches = [r.id for r in self._rules if prefix and r.id.startswith(prefix)]
        if len(matches) != 1:
            raise NotFoundError("rule", prefix)
        return matches[0]

    def apply(self, content: str) -> str:
        """
        Run every rule, in order, over content.

        Raises:
            InvalidPatternError: a stored rule no longer compiles (rule_id
                identifies it); no partial result is returned
        """
        rules = self.list_rules()

        result = content
        for rule in rules:
            try:
                regex = re.compile(rule.pattern)
            except re.error as e:
                raise InvalidPatternError(rule.pattern, str(e), rule_id=rule.id) from e

            try:
                transform = TRANSFORMS[RuleType(rule.type)]
            except ValueError:
                logger.warning(f"Skipping rule {rule.id} with unknown type {rule.type!r}")
                continue
            result = transform(result, rule, regex)

        return result
