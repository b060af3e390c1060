# ABOUTME: Advisory package; exposes root_agent for adk web/run and the cache-gated recommendation flow.
# ABOUTME: Use get_recommendations() from advisor.service for API integration.

from advisor.agent import fetch_recommendations, root_agent
from advisor.service import build_plan, get_recommendations, remove_goal, update_goal

__all__ = [
    "build_plan",
    "fetch_recommendations",
    "get_recommendations",
    "remove_goal",
    "root_agent",
    "update_goal",
]
