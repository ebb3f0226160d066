import logging
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException
from sqlalchemy.orm import Session

from aggregator import BudgetOverview
from config import get_settings
from database import SessionLocal
from exceptions import BudgetEngineError, DuplicateAllocationError
from periods import BudgetPeriod, resolve_period
from repository import SQLRowStore
from schemas import (
    BudgetEditIn,
    CategorySummaryOut,
    RetryIn,
    SaveBudgetIn,
    op_out,
)
from services import ApplyResult, BudgetDraft, BudgetService
from taxonomy import EXPENSE_TAXONOMY

settings = get_settings()
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Budget Tracker")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_budget_service(db: Session = Depends(get_db)) -> BudgetService:
    return BudgetService(SQLRowStore(db))


def period_from_query(month: Optional[str]) -> BudgetPeriod:
    try:
        return resolve_period(month, timezone=get_settings().timezone)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def overview_out(period: BudgetPeriod, overview: BudgetOverview) -> dict:
    return {
        "month": period.slug,
        "period_start": period.start_iso,
        "categories": [
            CategorySummaryOut.from_summary(c).model_dump(mode="json")
            for c in overview.categories
        ],
        "total_budgeted": str(overview.total_budgeted),
        "total_spent": str(overview.total_spent),
        "total_remaining": str(overview.total_remaining),
    }


def draft_out(draft: BudgetDraft) -> dict:
    return {
        "month": draft.period.slug,
        "period_start": draft.period.start_iso,
        "categories": [
            {
                "category_key": key,
                "display_name": EXPENSE_TAXONOMY.display_name(key),
                "amount": str(draft.original[key]),
                "id": draft.original_ids.get(key),
            }
            for key in EXPENSE_TAXONOMY.ordered(draft.original)
        ],
        "total": str(draft.total),
        "categories_with_budget": draft.categories_with_budget,
        "total_categories": len(EXPENSE_TAXONOMY),
    }


def apply_result_out(result: ApplyResult) -> dict:
    return {
        "month": result.period.slug,
        "status": result.status,
        "ops": [op_out(op) for op in result.ops],
        "succeeded": [op_out(op) for op in result.succeeded],
        "failed": [
            {"op": op_out(f.op), "error": f.error} for f in result.failed
        ],
        "failed_categories": result.failed_categories,
    }


@app.get("/api/categories")
def api_categories():
    return [
        {
            "key": c.key,
            "display_name": c.display_name,
            "icon": c.icon,
            "color": c.color,
        }
        for c in EXPENSE_TAXONOMY
    ]


@app.get("/api/budget")
def api_budget_overview(
    month: Optional[str] = None, svc: BudgetService = Depends(get_budget_service)
):
    period = period_from_query(month)
    try:
        overview = svc.overview(period)
    except DuplicateAllocationError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return overview_out(period, overview)


@app.get("/api/budget/draft")
def api_budget_draft(
    month: Optional[str] = None, svc: BudgetService = Depends(get_budget_service)
):
    period = period_from_query(month)
    try:
        draft = svc.draft(period)
    except DuplicateAllocationError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return draft_out(draft)


@app.post("/api/budget/edit")
def api_budget_edit(
    data: BudgetEditIn, svc: BudgetService = Depends(get_budget_service)
):
    draft = BudgetDraft(
        period=data.period,
        original=dict(data.original),
        original_ids=dict(data.original_ids),
        edited=dict(data.edited),
    )
    if not draft.has_changes:
        raise HTTPException(status_code=400, detail="No changes made to the budget.")
    if not draft.can_submit:
        raise HTTPException(status_code=400, detail="Budget total must be positive.")
    return apply_result_out(svc.apply_draft(draft))


@app.post("/api/budget")
def api_budget_save(data: SaveBudgetIn, svc: BudgetService = Depends(get_budget_service)):
    try:
        result = svc.save_budget(data.period, data.amounts)
    except DuplicateAllocationError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except (BudgetEngineError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return apply_result_out(result)


@app.post("/api/budget/retry")
def api_budget_retry(data: RetryIn, svc: BudgetService = Depends(get_budget_service)):
    return apply_result_out(svc.execute(data.period, data.to_ops()))


def main():
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()
