from .select import DEFAULT_DENY, DEFAULT_LIMIT, feature_title, select_attributes

__all__ = ["DEFAULT_DENY", "DEFAULT_LIMIT", "feature_title", "select_attributes"]
