"""
Recommendation API Routes.

Feed endpoints over the FeedOrchestrator. Query params are camelCase to
match the client apps; responses use the snake_case pydantic schemas.

Every feed returns 200 with an `items` / `vendors` array (possibly empty).
Missing required params -> 400 (InvalidFeedRequest handler in api.app);
out-of-range limits -> 422 (FastAPI validation).

NOTE: Routes use `def` (not `async def`) because the pipeline and its
collaborators (Supabase client, OpenAI SDK) are synchronous. FastAPI runs
sync handlers in a thread pool.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_orchestrator
from config.constants import DEFAULT_PIPELINE_CONFIG
from feed.models import FeedResponse, RouterResponse, VendorFeedResponse
from feed.pipeline import FeedOrchestrator


router = APIRouter(prefix="/recommend", tags=["Recommendations"])

MAX_LIMIT = DEFAULT_PIPELINE_CONFIG.MAX_LIMIT


@router.get("/feed", response_model=FeedResponse, summary="Personalized home feed")
def home_feed(
    user_id: Optional[str] = Query(None, alias="userId"),
    session_id: Optional[str] = Query(None, alias="sessionId"),
    limit: int = Query(DEFAULT_PIPELINE_CONFIG.DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    budget_max: Optional[float] = Query(None, alias="budgetMax", gt=0),
    deadline_days: Optional[int] = Query(None, alias="deadlineDays", ge=0),
    orchestrator: FeedOrchestrator = Depends(get_orchestrator),
) -> FeedResponse:
    """
    Type-mixed feed personalized by the user's profile and, when
    `sessionId` is given, the current session.
    """
    return orchestrator.get_home_feed(
        user_id=user_id,
        session_id=session_id,
        limit=limit,
        budget_max=budget_max,
        deadline_days=deadline_days,
    )


@router.get("/vendors", response_model=VendorFeedResponse, summary="Vendor discovery feed")
def vendor_feed(
    user_id: Optional[str] = Query(None, alias="userId"),
    limit: int = Query(10, ge=1, le=MAX_LIMIT),
    products_per_vendor: int = Query(3, alias="productsPerVendor", ge=1, le=20),
    orchestrator: FeedOrchestrator = Depends(get_orchestrator),
) -> VendorFeedResponse:
    return orchestrator.get_vendor_feed(
        user_id=user_id,
        limit=limit,
        products_per_vendor=products_per_vendor,
    )


@router.get("/trending", response_model=FeedResponse, summary="Trending items")
def trending_feed(
    limit: int = Query(DEFAULT_PIPELINE_CONFIG.DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    orchestrator: FeedOrchestrator = Depends(get_orchestrator),
) -> FeedResponse:
    return orchestrator.get_trending_feed(limit=limit)


@router.get("/new", response_model=FeedResponse, summary="New arrivals")
def new_arrivals_feed(
    limit: int = Query(DEFAULT_PIPELINE_CONFIG.DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    days: int = Query(DEFAULT_PIPELINE_CONFIG.DEFAULT_NEW_ARRIVAL_DAYS, ge=1, le=365),
    orchestrator: FeedOrchestrator = Depends(get_orchestrator),
) -> FeedResponse:
    return orchestrator.get_new_arrivals_feed(limit=limit, days=days)


@router.get("/bought-together", response_model=FeedResponse, summary="Frequently bought together")
def bought_together(
    item_id: Optional[str] = Query(None, alias="itemId"),
    limit: int = Query(10, ge=1, le=MAX_LIMIT),
    orchestrator: FeedOrchestrator = Depends(get_orchestrator),
) -> FeedResponse:
    return orchestrator.get_bought_together(item_id=item_id, limit=limit)


@router.get("/complete-look", response_model=FeedResponse, summary="Complete the look")
def complete_the_look(
    item_ids: Optional[str] = Query(None, alias="itemIds", description="Comma-separated item ids"),
    user_id: Optional[str] = Query(None, alias="userId"),
    limit: int = Query(10, ge=1, le=MAX_LIMIT),
    orchestrator: FeedOrchestrator = Depends(get_orchestrator),
) -> FeedResponse:
    ids = [i.strip() for i in item_ids.split(",")] if item_ids else []
    return orchestrator.get_complete_the_look(item_ids=ids, user_id=user_id, limit=limit)


@router.get("/route", response_model=RouterResponse, summary="Classify a shopping query")
def route_query(
    q: Optional[str] = Query(None, description="Free-text query"),
    orchestrator: FeedOrchestrator = Depends(get_orchestrator),
) -> RouterResponse:
    """Intent of a free-text query. Falls back to home_feed on any failure."""
    return orchestrator.route(q)
