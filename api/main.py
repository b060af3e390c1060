# ABOUTME: FastAPI app: projection, retirement corpus, risk profile, plan, cache-gated recommendations, cache admin routes.
# ABOUTME: 400 on invalid input; advice outages return the deterministic plan with advice_status="unavailable".

import logging

from fastapi import FastAPI, Query, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from advisor.service import build_plan, get_recommendations
from core.config import CORS_ORIGINS, MAX_GOALS_PER_PLAN
from core.errors import CacheStorageError, InvalidInputError, UpstreamFailure
from core.schemas import (
    CacheStats,
    ClientProfile,
    GoalInput,
    Milestone,
    PlanReport,
    ProjectionResult,
    RecommendationOutcome,
    RetirementEstimate,
    RiskRecommendation,
)
from planner.cache import RecommendationCache
from planner.estimates import recommend_risk_tolerance, retirement_corpus
from planner.projection import goal_milestones, project

app = FastAPI(title="Goal Planner API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_cache = RecommendationCache()


class ProjectionRequest(BaseModel):
    target_amount: float
    time_in_years: float
    risk_tolerance: str


class ProjectionResponse(BaseModel):
    projection: ProjectionResult
    milestones: list[Milestone]


class RetirementRequest(BaseModel):
    monthly_expenses: float
    lifestyle_factor: float = 1.0
    years_to_retirement: float
    years_in_retirement: float = 25
    inflation_rate: float = 0.06


class RiskProfileRequest(BaseModel):
    age: int
    time_in_years: float


class PlanRequest(BaseModel):
    client: ClientProfile
    goals: list[GoalInput] = Field(max_length=MAX_GOALS_PER_PLAN)


def _bad_request(exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=400, content={"message": str(exc)})


@app.post("/projection", response_model=ProjectionResponse)
def post_projection(req: ProjectionRequest):
    """Required monthly SIP and allocation for one target, plus 25/50/75/100% milestones."""
    try:
        result = project(req.target_amount, req.time_in_years, req.risk_tolerance)
    except InvalidInputError as e:
        return _bad_request(e)
    milestones = []
    if not result.immediate:
        milestones = goal_milestones(
            req.target_amount,
            result.monthly_sip,
            result.expected_return,
            horizon_months=result.months,
        )
    return ProjectionResponse(projection=result, milestones=milestones)


@app.post("/retirement-corpus", response_model=RetirementEstimate)
def post_retirement_corpus(req: RetirementRequest):
    """Corpus needed at retirement; use total_corpus_required as a goal target_amount."""
    try:
        return retirement_corpus(
            req.monthly_expenses,
            req.lifestyle_factor,
            req.years_to_retirement,
            req.years_in_retirement,
            req.inflation_rate,
        )
    except InvalidInputError as e:
        return _bad_request(e)


@app.post("/risk-profile", response_model=RiskRecommendation)
def post_risk_profile(req: RiskProfileRequest):
    try:
        return recommend_risk_tolerance(req.age, req.time_in_years)
    except InvalidInputError as e:
        return _bad_request(e)


@app.post("/plan", response_model=PlanReport)
def post_plan(req: PlanRequest):
    """Deterministic plan: projected goals, timeline conflicts, greedy allocation and phases. No advisory call."""
    try:
        return build_plan(req.goals, req.client)
    except InvalidInputError as e:
        return _bad_request(e)


@app.post("/recommendations", response_model=RecommendationOutcome)
async def post_recommendations(req: PlanRequest, force_refresh: bool = Query(False)):
    """Plan plus advisory recommendations, served from the cache when goals and client are unchanged."""
    try:
        return await get_recommendations(
            req.goals, req.client, cache=_cache, force_refresh=force_refresh
        )
    except InvalidInputError as e:
        return _bad_request(e)
    except UpstreamFailure as e:
        logging.warning("advisory source unavailable for client %s: %s", req.client.client_id, e)
        if e.plan is None:
            return JSONResponse(
                status_code=502,
                content={"message": "Recommendations are unavailable. Please retry."},
            )
        return RecommendationOutcome(
            plan=e.plan,
            advice_status="unavailable",
            message="Recommendations are temporarily unavailable. Please retry.",
        )
    except Exception:
        logging.exception("post_recommendations failed unexpectedly")
        return JSONResponse(
            status_code=500,
            content={"message": "An unexpected error occurred while building recommendations."},
        )


@app.post("/recommendations/refresh", status_code=204)
def post_refresh(req: PlanRequest):
    """Drop the client's cached recommendations so the next request recomputes."""
    try:
        _cache.force_refresh(req.goals, req.client)
    except CacheStorageError:
        logging.exception("post_refresh failed (cache storage error)")
        return JSONResponse(
            status_code=500,
            content={"message": "Could not refresh cached recommendations."},
        )
    return Response(status_code=204)


@app.delete("/recommendations/cache")
def delete_cache():
    """Remove every cached recommendation for every client. Returns { removed: N }."""
    try:
        removed = _cache.clear_all()
    except CacheStorageError:
        logging.exception("delete_cache failed (cache storage error)")
        return JSONResponse(
            status_code=500,
            content={"message": "Could not clear cached recommendations."},
        )
    return {"removed": removed}


@app.get("/recommendations/cache/stats", response_model=CacheStats)
def get_cache_stats():
    try:
        return _cache.stats()
    except CacheStorageError:
        logging.exception("get_cache_stats failed (cache storage error)")
        return JSONResponse(
            status_code=500,
            content={"message": "Could not read cache statistics."},
        )
