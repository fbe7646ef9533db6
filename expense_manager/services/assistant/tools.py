"""Capability registry exposed to the chat model.

Each tool couples a name, a description, the parameter list rendered into the
OpenAI `tools` schema, a pydantic model validating the call arguments, and
the handler that runs against `ExpenseService`. Execution never raises:
unknown names, malformed JSON and invalid arguments all come back as a JSON
`{"error": ...}` tool result the model can react to.
"""

from __future__ import annotations

import json
import logging
from decimal import Decimal
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, Type

from pydantic import BaseModel, Field, ValidationError

from expense_manager.models.constants import StatusId
from expense_manager.models.expense import ExpenseCreate, ExpenseFilters
from expense_manager.models.result import OperationResult
from expense_manager.services.expense_service import ExpenseService

logger = logging.getLogger("app.assistant.tools")


@dataclass(frozen=True)
class ToolParameter:
    name: str
    type: str  # JSON schema type
    description: str
    required: bool = False


@dataclass
class ToolSpec:
    name: str
    description: str
    args_model: Type[BaseModel]
    handler: Callable[[Any], Any]
    parameters: List[ToolParameter] = field(default_factory=list)

    def to_openai(self) -> Dict[str, Any]:
        properties = {
            p.name: {"type": p.type, "description": p.description}
            for p in self.parameters
        }
        schema: Dict[str, Any] = {"type": "object", "properties": properties}
        required = [p.name for p in self.parameters if p.required]
        if required:
            schema["required"] = required
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": schema,
            },
        }


def _describe_argument_error(name: str, exc: Exception) -> str:
    if isinstance(exc, ValidationError):
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}"
            for err in exc.errors()
        )
        return f"Invalid arguments for {name}: {problems}"
    return f"Invalid arguments for {name}: {exc}"


class ToolRegistry:
    def __init__(self) -> None:
        self._tools: Dict[str, ToolSpec] = {}

    def register(self, spec: ToolSpec) -> None:
        if spec.name in self._tools:
            raise ValueError(f"Tool '{spec.name}' already registered")
        self._tools[spec.name] = spec

    def names(self) -> List[str]:
        return list(self._tools)

    def descriptions(self) -> List[Tuple[str, str]]:
        return [(spec.name, spec.description) for spec in self._tools.values()]

    def openai_tools(self) -> List[Dict[str, Any]]:
        return [spec.to_openai() for spec in self._tools.values()]

    def execute(self, name: str, arguments: Optional[str]) -> str:
        """Run a tool call and return its JSON-encoded result."""
        spec = self._tools.get(name)
        if spec is None:
            logger.warning("model requested unknown function %s", name)
            return json.dumps({"error": f"Unknown function: {name}"})
        try:
            raw = json.loads(arguments, parse_float=Decimal) if arguments else {}
            if not isinstance(raw, dict):
                raise ValueError("arguments must be a JSON object")
            args = spec.args_model.model_validate(raw)
        except (ValueError, RecursionError) as exc:
            # RecursionError: nesting deeper than the decoder can follow
            message = _describe_argument_error(name, exc)
            logger.warning(message)
            return json.dumps({"error": message})
        try:
            result = spec.handler(args)
        except Exception as exc:
            logger.exception("Error executing function %s", name)
            return json.dumps({"error": str(exc)})
        logger.debug("function %s executed", name)
        return json.dumps(result, default=str)


# Argument models ------------------------------------------------------


class NoArgs(BaseModel):
    pass


class ExpenseIdArgs(BaseModel):
    expense_id: int = Field(..., gt=0)


class ReviewArgs(BaseModel):
    expense_id: int = Field(..., gt=0)
    reviewer_id: int = Field(..., gt=0)


class SearchArgs(BaseModel):
    search_term: Optional[str] = None


class GetExpensesArgs(BaseModel):
    user_id: Optional[int] = None
    status_id: Optional[StatusId] = None
    category_id: Optional[int] = None
    search_term: Optional[str] = None


# Result shaping -------------------------------------------------------


def _listing(result: OperationResult) -> Dict[str, Any]:
    if result.error is not None:
        return {"error": result.error.message}
    expenses = [e.model_dump(mode="json") for e in result.value or []]
    payload: Dict[str, Any] = {"count": len(expenses), "expenses": expenses}
    if result.advisory:
        payload["warning"] = "Showing sample data: " + result.advisory
    return payload


def _outcome(result: OperationResult) -> Dict[str, Any]:
    return {
        "success": result.success,
        "error": result.error.message if result.error else None,
    }


def build_expense_tools(service: ExpenseService) -> ToolRegistry:
    """Register the eight expense tools against `service`."""
    registry = ToolRegistry()

    def get_expenses(args: GetExpensesArgs) -> Dict[str, Any]:
        return _listing(service.list_expenses(ExpenseFilters(**args.model_dump())))

    def get_expense_by_id(args: ExpenseIdArgs) -> Dict[str, Any]:
        result = service.get_expense(args.expense_id)
        if result.error is not None:
            return {"error": result.error.message}
        if result.value is None:
            return {"error": f"Expense {args.expense_id} not found"}
        return result.value.model_dump(mode="json")

    def create_expense(args: ExpenseCreate) -> Dict[str, Any]:
        result = service.create_expense(args)
        return {"expense_id": result.value, **_outcome(result)}

    def submit_expense(args: ExpenseIdArgs) -> Dict[str, Any]:
        return _outcome(service.submit_expense(args.expense_id))

    def get_pending_approvals(args: SearchArgs) -> Dict[str, Any]:
        return _listing(service.list_pending_approvals(args.search_term))

    def approve_expense(args: ReviewArgs) -> Dict[str, Any]:
        return _outcome(service.approve_expense(args.expense_id, args.reviewer_id))

    def reject_expense(args: ReviewArgs) -> Dict[str, Any]:
        return _outcome(service.reject_expense(args.expense_id, args.reviewer_id))

    def get_dashboard_stats(args: NoArgs) -> Dict[str, Any]:
        result = service.get_dashboard_stats()
        if result.error is not None:
            return {"error": result.error.message}
        payload = result.value.model_dump(mode="json")
        if result.advisory:
            payload["warning"] = "Showing sample data: " + result.advisory
        return payload

    registry.register(
        ToolSpec(
            name="get_expenses",
            description=(
                "Retrieves a list of expenses. Can filter by user, status, "
                "category, or search term."
            ),
            args_model=GetExpensesArgs,
            handler=get_expenses,
            parameters=[
                ToolParameter("user_id", "integer", "Filter by user ID"),
                ToolParameter(
                    "status_id",
                    "integer",
                    "Filter by status ID (1=Draft, 2=Submitted, 3=Approved, 4=Rejected)",
                ),
                ToolParameter(
                    "category_id",
                    "integer",
                    "Filter by category ID (1=Travel, 2=Meals, 3=Supplies, "
                    "4=Accommodation, 5=Other)",
                ),
                ToolParameter(
                    "search_term", "string", "Search in description, category, or user name"
                ),
            ],
        )
    )
    registry.register(
        ToolSpec(
            name="get_expense_by_id",
            description="Gets detailed information about a specific expense by its ID.",
            args_model=ExpenseIdArgs,
            handler=get_expense_by_id,
            parameters=[
                ToolParameter(
                    "expense_id", "integer", "The ID of the expense to retrieve", True
                )
            ],
        )
    )
    registry.register(
        ToolSpec(
            name="create_expense",
            description="Creates a new draft expense entry.",
            args_model=ExpenseCreate,
            handler=create_expense,
            parameters=[
                ToolParameter(
                    "user_id", "integer", "The user ID who is creating the expense", True
                ),
                ToolParameter(
                    "category_id",
                    "integer",
                    "Category ID (1=Travel, 2=Meals, 3=Supplies, 4=Accommodation, 5=Other)",
                    True,
                ),
                ToolParameter("amount", "number", "Amount in GBP", True),
                ToolParameter(
                    "expense_date",
                    "string",
                    "Date of the expense in YYYY-MM-DD format",
                    True,
                ),
                ToolParameter("description", "string", "Description of the expense"),
            ],
        )
    )
    registry.register(
        ToolSpec(
            name="submit_expense",
            description="Submits a draft expense for approval.",
            args_model=ExpenseIdArgs,
            handler=submit_expense,
            parameters=[
                ToolParameter(
                    "expense_id", "integer", "The ID of the expense to submit", True
                )
            ],
        )
    )
    registry.register(
        ToolSpec(
            name="get_pending_approvals",
            description="Gets all expenses that are waiting for approval.",
            args_model=SearchArgs,
            handler=get_pending_approvals,
            parameters=[
                ToolParameter(
                    "search_term",
                    "string",
                    "Optional search term to filter pending approvals",
                )
            ],
        )
    )
    registry.register(
        ToolSpec(
            name="approve_expense",
            description="Approves a submitted expense. Only managers can do this.",
            args_model=ReviewArgs,
            handler=approve_expense,
            parameters=[
                ToolParameter(
                    "expense_id", "integer", "The ID of the expense to approve", True
                ),
                ToolParameter(
                    "reviewer_id", "integer", "The user ID of the manager approving", True
                ),
            ],
        )
    )
    registry.register(
        ToolSpec(
            name="reject_expense",
            description="Rejects a submitted expense. Only managers can do this.",
            args_model=ReviewArgs,
            handler=reject_expense,
            parameters=[
                ToolParameter(
                    "expense_id", "integer", "The ID of the expense to reject", True
                ),
                ToolParameter(
                    "reviewer_id", "integer", "The user ID of the manager rejecting", True
                ),
            ],
        )
    )
    registry.register(
        ToolSpec(
            name="get_dashboard_stats",
            description=(
                "Gets overall statistics including total expenses, pending "
                "approvals, and approved amounts."
            ),
            args_model=NoArgs,
            handler=get_dashboard_stats,
        )
    )
    return registry
