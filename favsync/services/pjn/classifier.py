"""
Procedural-stage classifier.

A case is in the expert-evidence stage ("prueba pericial") when the detail
text of any of its movements matches any rule of the rule table. Rules are
loaded from a JSON file so the table can be versioned and tested on its
own; order only decides which rule gets reported.
"""

import json
import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional, Sequence

from favsync.services.pjn.errors import RuleTableError
from favsync.services.pjn.movements import Movement, as_movements, movement_detail_text

logger = logging.getLogger("favsync.classifier")

DEFAULT_RULES_PATH = Path(__file__).parent / "rules" / "pericia.json"


@dataclass(frozen=True)
class StageRule:
    label: str
    pattern: re.Pattern

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None


@dataclass(frozen=True)
class RuleTable:
    name: str
    version: int
    rules: tuple[StageRule, ...]

    def first_match(self, text: str) -> Optional[StageRule]:
        for rule in self.rules:
            if rule.matches(text):
                return rule
        return None

    def __len__(self) -> int:
        return len(self.rules)


@dataclass(frozen=True)
class StageMatch:
    """Which movement triggered the classification, and by which rule."""
    movement_index: int
    rule_label: str
    text: str


def build_rule_table(data: dict, source: str = "<memory>") -> RuleTable:
    """Compile a rule table from its decoded JSON form."""
    raw_rules = data.get("rules")
    if not isinstance(raw_rules, list) or not raw_rules:
        raise RuleTableError(f"{source}: 'rules' must be a non-empty list")

    rules = []
    for i, entry in enumerate(raw_rules):
        if not isinstance(entry, dict) or not entry.get("pattern"):
            raise RuleTableError(f"{source}: rule #{i} has no pattern")
        label = entry.get("label") or f"rule_{i}"
        try:
            pattern = re.compile(entry["pattern"], re.IGNORECASE)
        except re.error as e:
            raise RuleTableError(f"{source}: rule {label!r} has an invalid pattern: {e}") from e
        rules.append(StageRule(label=label, pattern=pattern))

    return RuleTable(
        name=str(data.get("name", Path(source).stem)),
        version=int(data.get("version", 1)),
        rules=tuple(rules),
    )


def load_rule_table(path: Optional[Path] = None) -> RuleTable:
    """Load and compile a rule table file (the bundled one by default)."""
    path = Path(path) if path else DEFAULT_RULES_PATH
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise RuleTableError(f"Cannot read rule table {path}: {e}") from e
    table = build_rule_table(data, source=str(path))
    logger.debug("Loaded rule table %s v%s (%d rules)", table.name, table.version, len(table))
    return table


@lru_cache(maxsize=8)
def _cached_table(path: str) -> RuleTable:
    return load_rule_table(Path(path) if path else None)


def get_rule_table(path: Optional[str] = None) -> RuleTable:
    """Cached rule table; `path` empty or None means the bundled table."""
    return _cached_table(path or "")


def classify_text(text: str, table: Optional[RuleTable] = None) -> Optional[str]:
    """Label of the first rule matching `text`, or None."""
    if table is None:
        table = get_rule_table()
    rule = table.first_match(text.upper())
    return rule.label if rule else None


def classify_movements(movements: Any, table: Optional[RuleTable] = None) -> Optional[StageMatch]:
    """First (movement, rule) pair that matches, scanning movements in order."""
    if table is None:
        table = get_rule_table()
    parsed: Sequence[Movement] = as_movements(movements)
    for index, movement in enumerate(parsed):
        text = movement_detail_text(movement).upper()
        if not text:
            continue
        rule = table.first_match(text)
        if rule is not None:
            return StageMatch(movement_index=index, rule_label=rule.label, text=text)
    return None


def has_prueba_pericia(movements: Any, table: Optional[RuleTable] = None) -> bool:
    """True when any movement matches any rule."""
    return classify_movements(movements, table) is not None
