from __future__ import annotations

import re

from stories.types import ClassificationRule, StoryClassification
from symbology.classify import AllOf, AttributeIn, AttributeMatches, Predicate, Rule, RuleSet


def rule_set_from_config(cfg: StoryClassification | None) -> RuleSet | None:
    if cfg is None:
        return None
    return RuleSet(
        rules=tuple(_rule(r, default_field=cfg.field) for r in cfg.rules),
        default=cfg.default,
    )


def _rule(cfg: ClassificationRule, *, default_field: str) -> Rule:
    preds: list[Predicate] = []
    if cfg.values:
        preds.append(
            AttributeIn(
                field=default_field,
                values=frozenset(v.strip() for v in cfg.values),
                case_sensitive=cfg.caseSensitive,
            )
        )
    for field, values in (cfg.props or {}).items():
        preds.append(
            AttributeIn(
                field=field,
                values=frozenset(v.strip() for v in values),
                case_sensitive=cfg.caseSensitive,
            )
        )
    for field, pattern in (cfg.matches or {}).items():
        flags = 0 if cfg.caseSensitive else re.IGNORECASE
        preds.append(AttributeMatches(field=field, pattern=re.compile(pattern, flags)))

    predicate: Predicate = preds[0] if len(preds) == 1 else AllOf(predicates=tuple(preds))
    return Rule(predicate=predicate, label=cfg.label)
