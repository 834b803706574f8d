from .validator import SlugValidator
from .priority import PriorityPolicy, LOWEST_PRIORITY

__all__ = ["SlugValidator", "PriorityPolicy", "LOWEST_PRIORITY"]
