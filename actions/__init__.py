"""
Actions package: the action taxonomy, project resources and message predicates.
"""

from .models import ActionCategory, ActionType, ActionDelta, Action

__all__ = ["ActionCategory", "ActionType", "ActionDelta", "Action"]
