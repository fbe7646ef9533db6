from fastapi import APIRouter, Depends, Request

from expense_manager.core.config import Settings
from expense_manager.models.chat import ChatRequest, ChatResponse, ChatStatus
from expense_manager.routers.expenses import get_app_settings, get_expense_service
from expense_manager.services.assistant.chat import AssistantService
from expense_manager.services.assistant.client import ChatModel
from expense_manager.services.assistant.tools import build_expense_tools
from expense_manager.services.expense_service import ExpenseService

router = APIRouter(prefix="/api/chat", tags=["chat"])


def get_chat_model(request: Request) -> ChatModel:
    return request.app.state.chat_model


def get_assistant(
    model: ChatModel = Depends(get_chat_model),
    service: ExpenseService = Depends(get_expense_service),
    settings: Settings = Depends(get_app_settings),
) -> AssistantService:
    return AssistantService(
        model,
        build_expense_tools(service),
        max_iterations=settings.chat_max_iterations,
    )


@router.post("", response_model=ChatResponse, summary="Send a message to the expense assistant")
async def chat(payload: ChatRequest, assistant: AssistantService = Depends(get_assistant)):
    return await assistant.process_message(payload)


@router.get("/status", response_model=ChatStatus, summary="Whether chat is configured")
async def chat_status(assistant: AssistantService = Depends(get_assistant)):
    return assistant.status()
