from .classify import (
    DEFAULT_CATEGORY,
    AllOf,
    AttributeIn,
    AttributeMatches,
    Rule,
    RuleSet,
    classify,
    classify_collection,
)
from .rules import rule_set_from_config

__all__ = [
    "DEFAULT_CATEGORY",
    "AllOf",
    "AttributeIn",
    "AttributeMatches",
    "Rule",
    "RuleSet",
    "classify",
    "classify_collection",
    "rule_set_from_config",
]
