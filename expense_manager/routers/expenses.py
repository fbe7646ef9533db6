from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from pydantic import BaseModel
from typing import List, Optional

from expense_manager.core.config import Settings
from expense_manager.core.errors import operation_error_response
from expense_manager.db.dal import Database
from expense_manager.db.fallback import NoFallback, SampleDataSource
from expense_manager.models.constants import StatusId
from expense_manager.models.expense import (
    Category,
    DashboardStats,
    Expense,
    ExpenseCreate,
    ExpenseFilters,
    ExpenseStatus,
    ExpenseUpdate,
    User,
)
from expense_manager.models.result import OperationResult
from expense_manager.services.expense_service import ExpenseService

router = APIRouter(prefix="/api/expenses", tags=["expenses"])

ERROR_HEADER = "X-Error-Message"

# Dependencies -----------------------------------------------------


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_db(settings: Settings = Depends(get_app_settings)) -> Database:
    return Database(settings.db_path)


def get_expense_service(
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> ExpenseService:
    fallback = SampleDataSource() if settings.fallback_enabled else NoFallback()
    return ExpenseService(db, fallback=fallback)


# Request / Response Models (thin wrappers) ------------------------
class ExpenseCreatedOut(BaseModel):
    expense_id: int


class SuccessOut(BaseModel):
    success: bool = True


# Helpers ----------------------------------------------------------


def _read_payload(result: OperationResult, response: Response):
    """Unwrap a read; fallback data is returned with the store error in a header."""
    if result.error is not None:
        raise HTTPException(status_code=503, detail=result.error.message)
    if result.advisory:
        # header values must be latin-1 and single-line
        response.headers[ERROR_HEADER] = (
            result.advisory.replace("\n", " ").encode("latin-1", "replace").decode("latin-1")
        )
    return result.value


def _mutation_response(result: OperationResult):
    if result.error is not None:
        return operation_error_response(result.error)
    return SuccessOut()


# Routes -----------------------------------------------------------
# Fixed paths are declared before "/{expense_id}" so they are not shadowed.


@router.get("/pending", response_model=List[Expense], summary="Expenses awaiting approval")
async def list_pending_approvals(
    response: Response,
    search_term: Optional[str] = Query(None, description="Optional search term"),
    service: ExpenseService = Depends(get_expense_service),
):
    return _read_payload(service.list_pending_approvals(search_term), response)


@router.get("/stats", response_model=DashboardStats, summary="Dashboard statistics")
async def get_dashboard_stats(
    response: Response, service: ExpenseService = Depends(get_expense_service)
):
    return _read_payload(service.get_dashboard_stats(), response)


@router.get("/categories", response_model=List[Category], summary="Expense categories")
async def list_categories(
    response: Response, service: ExpenseService = Depends(get_expense_service)
):
    return _read_payload(service.list_categories(), response)


@router.get("/statuses", response_model=List[ExpenseStatus], summary="Expense statuses")
async def list_statuses(
    response: Response, service: ExpenseService = Depends(get_expense_service)
):
    return _read_payload(service.list_statuses(), response)


@router.get("/users", response_model=List[User], summary="Users")
async def list_users(
    response: Response, service: ExpenseService = Depends(get_expense_service)
):
    return _read_payload(service.list_users(), response)


@router.get(
    "", response_model=List[Expense], summary="List expenses with optional filters"
)
async def list_expenses(
    response: Response,
    user_id: Optional[int] = Query(None, description="Filter by user ID"),
    status_id: Optional[StatusId] = Query(
        None, description="Filter by status (1=Draft, 2=Submitted, 3=Approved, 4=Rejected)"
    ),
    category_id: Optional[int] = Query(None, description="Filter by category ID"),
    search_term: Optional[str] = Query(
        None, description="Search in description, category, or user name"
    ),
    service: ExpenseService = Depends(get_expense_service),
):
    filters = ExpenseFilters(
        user_id=user_id,
        status_id=status_id,
        category_id=category_id,
        search_term=search_term,
    )
    return _read_payload(service.list_expenses(filters), response)


@router.get("/{expense_id}", response_model=Expense, summary="Get an expense")
async def get_expense(
    expense_id: int,
    response: Response,
    service: ExpenseService = Depends(get_expense_service),
):
    expense = _read_payload(service.get_expense(expense_id), response)
    if expense is None:
        raise HTTPException(status_code=404, detail="expense not found")
    return expense


@router.post(
    "",
    response_model=ExpenseCreatedOut,
    status_code=201,
    summary="Create a draft expense",
)
async def create_expense(
    payload: ExpenseCreate,
    service: ExpenseService = Depends(get_expense_service),
):
    result = service.create_expense(payload)
    if result.error is not None:
        return operation_error_response(result.error)
    return ExpenseCreatedOut(expense_id=result.value)


@router.put(
    "/{expense_id}",
    response_model=SuccessOut,
    summary="Update a Draft expense",
)
async def update_expense(
    expense_id: int,
    payload: ExpenseUpdate,
    service: ExpenseService = Depends(get_expense_service),
):
    return _mutation_response(service.update_expense(expense_id, payload))


@router.delete(
    "/{expense_id}", response_model=SuccessOut, summary="Delete a Draft expense"
)
async def delete_expense(
    expense_id: int,
    service: ExpenseService = Depends(get_expense_service),
):
    return _mutation_response(service.delete_expense(expense_id))


@router.post(
    "/{expense_id}/submit",
    response_model=SuccessOut,
    summary="Submit a draft expense for approval",
)
async def submit_expense(
    expense_id: int,
    service: ExpenseService = Depends(get_expense_service),
):
    return _mutation_response(service.submit_expense(expense_id))


@router.post(
    "/{expense_id}/approve",
    response_model=SuccessOut,
    summary="Approve a submitted expense (manager action)",
)
async def approve_expense(
    expense_id: int,
    reviewer_id: int = Query(..., description="The reviewer's user ID"),
    service: ExpenseService = Depends(get_expense_service),
):
    return _mutation_response(service.approve_expense(expense_id, reviewer_id))


@router.post(
    "/{expense_id}/reject",
    response_model=SuccessOut,
    summary="Reject a submitted expense (manager action)",
)
async def reject_expense(
    expense_id: int,
    reviewer_id: int = Query(..., description="The reviewer's user ID"),
    service: ExpenseService = Depends(get_expense_service),
):
    return _mutation_response(service.reject_expense(expense_id, reviewer_id))
