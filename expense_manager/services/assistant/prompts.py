"""Prompt text for the expense assistant."""

from __future__ import annotations

from typing import Iterable

SYSTEM_PROMPT_TEMPLATE = """You are an intelligent assistant for the Expense Management System. You help users manage their expenses, view reports, and understand their spending patterns.

You have access to the following functions to interact with the expense database:
{function_list}

Expense statuses: 1=Draft, 2=Submitted, 3=Approved, 4=Rejected. Only Draft expenses can be submitted, and only Submitted expenses can be approved or rejected.

When users ask about their expenses or want to perform actions:
1. Use the appropriate function to get or modify data
2. Present the results in a clear, formatted way
3. Use bullet points or numbered lists for multiple items
4. Format currency values as £X.XX
5. Be helpful and suggest related actions the user might want to take

If a function result contains an "error", explain the problem to the user instead of retrying blindly.
If a function result contains a "warning", tell the user the data may be sample data.
If the user asks about something outside the expense system, politely redirect them to expense-related topics."""

NOT_CONFIGURED_RESPONSE = (
    "**The AI assistant is not configured.**\n\n"
    "To enable natural-language chat over your expense data, set the "
    "`OPENAI_API_KEY` and `OPENAI_DEPLOYMENT` environment variables "
    "(plus `OPENAI_ENDPOINT` when using an Azure OpenAI resource) and restart "
    "the service.\n\n"
    "Everything else (creating, submitting and approving expenses) keeps "
    "working through the regular API."
)

ERROR_RESPONSE = "I'm sorry, I encountered an error processing your request."
EXHAUSTED_RESPONSE = "I encountered an issue processing your request. Please try again."
EMPTY_RESPONSE = "I couldn't process your request."


def build_system_prompt(tool_descriptions: Iterable[tuple[str, str]]) -> str:
    function_list = "\n".join(f"- {name}: {desc}" for name, desc in tool_descriptions)
    return SYSTEM_PROMPT_TEMPLATE.format(function_list=function_list)
