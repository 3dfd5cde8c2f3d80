"""
News integrity layer.

Modules:
- fact_guard: Fact verification of AI summaries against source articles
- retention: Ordered purge of incidents past the retention horizon
"""

from newsroom.news.fact_guard import FactVerificationGuard, ScriptProfile
from newsroom.news.retention import RetentionCleanup, RetentionError
