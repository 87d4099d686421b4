"""In-process cache of habit log views with optimistic writes."""

from ..domain.selectors import ViewSelector
from .log_cache import LogCache, Subscription
from .views import ViewSnapshot

__all__ = ["LogCache", "Subscription", "ViewSelector", "ViewSnapshot"]
