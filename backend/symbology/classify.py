from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Protocol

from layers.types import Feature, FeatureCollection

DEFAULT_CATEGORY = "other"


class Predicate(Protocol):
    def __call__(self, props: Mapping[str, Any]) -> bool: ...


def _norm(v: Any, *, case_sensitive: bool) -> str:
    s = str(v).strip()
    return s if case_sensitive else s.lower()


@dataclass(frozen=True)
class AttributeIn:
    """
    True when `props[field]` is one of `values` (compared as trimmed strings).
    """

    field: str
    values: frozenset[str]
    case_sensitive: bool = True

    def __call__(self, props: Mapping[str, Any]) -> bool:
        v = props.get(self.field)
        if v is None:
            return False
        allowed = (
            self.values
            if self.case_sensitive
            else frozenset(x.lower() for x in self.values)
        )
        return _norm(v, case_sensitive=self.case_sensitive) in allowed


@dataclass(frozen=True)
class AttributeMatches:
    field: str
    pattern: re.Pattern[str]

    def __call__(self, props: Mapping[str, Any]) -> bool:
        v = props.get(self.field)
        if v is None:
            return False
        return self.pattern.search(str(v)) is not None


@dataclass(frozen=True)
class AllOf:
    predicates: tuple[Predicate, ...]

    def __call__(self, props: Mapping[str, Any]) -> bool:
        return all(p(props) for p in self.predicates)


@dataclass(frozen=True)
class Rule:
    predicate: Predicate | Callable[[Mapping[str, Any]], bool]
    label: str


@dataclass(frozen=True)
class RuleSet:
    """
    Ordered (predicate, label) pairs; the first matching rule wins.
    """

    rules: tuple[Rule, ...] = ()
    default: str = DEFAULT_CATEGORY
    labels: tuple[str, ...] = field(init=False, default=())

    def __post_init__(self) -> None:
        seen: list[str] = []
        for r in self.rules:
            if r.label not in seen:
                seen.append(r.label)
        if self.default not in seen:
            seen.append(self.default)
        object.__setattr__(self, "labels", tuple(seen))


def classify_props(props: Mapping[str, Any], rule_set: RuleSet) -> str:
    for rule in rule_set.rules:
        try:
            matched = bool(rule.predicate(props))
        except (TypeError, ValueError):
            matched = False
        if matched:
            return rule.label
    return rule_set.default


def classify(feature: Feature, rule_set: RuleSet) -> str:
    """
    Category label for one feature. Depends only on its attributes and the rule set.
    """
    return classify_props(feature.properties or {}, rule_set)


def classify_collection(collection: FeatureCollection, rule_set: RuleSet | None) -> list[str]:
    """
    Per-feature labels, aligned with `collection.features`. The collection is not modified.
    """
    if rule_set is None:
        return [DEFAULT_CATEGORY for _ in collection.features]
    return [classify(f, rule_set) for f in collection.features]
