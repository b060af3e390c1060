# ABOUTME: Goal planning core: goal sizing, projection engine, conflict detector, greedy allocator and recommendation cache.
# ABOUTME: Everything here is synchronous; the advisory call lives in the advisor package.

from planner.allocator import optimize, phase_goals
from planner.cache import RecommendationCache, fingerprint
from planner.conflicts import detect_conflicts
from planner.estimates import recommend_risk_tolerance, retirement_corpus
from planner.policy import DEFAULT_POLICY, AllocationPolicy, load_policy
from planner.projection import project, project_goal, project_goals

__all__ = [
    "AllocationPolicy",
    "DEFAULT_POLICY",
    "RecommendationCache",
    "detect_conflicts",
    "fingerprint",
    "load_policy",
    "optimize",
    "phase_goals",
    "project",
    "project_goal",
    "project_goals",
    "recommend_risk_tolerance",
    "retirement_corpus",
]
