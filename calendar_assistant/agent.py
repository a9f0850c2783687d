"""LangGraph function-calling agent for the Calendar Assistant.

Architecture:
  A two-node LangGraph StateGraph:

    1. **chatbot** - the chat model (Gemini by default, Claude when
                     ``LLM_PROVIDER=anthropic``) bound to the appointment tools
    2. **tools**   - executes every tool call the model requested and feeds
                     all results back

  Routing:
    chatbot → (has tool calls?) → tools → chatbot (loop)
            → (no tool calls?)  → END

  Tools run on behalf of the ``user_id`` passed in the run configuration
  (``config["configurable"]["user_id"]``).  Conversation state is kept per
  ``thread_id`` by a MemorySaver checkpoint.
"""

from __future__ import annotations

import logging
import time
from typing import Annotated, Any

from langchain_anthropic import ChatAnthropic
from langchain_core.messages import AnyMessage, HumanMessage, SystemMessage
from langchain_google_genai import ChatGoogleGenerativeAI
from langgraph.checkpoint.memory import MemorySaver
from langgraph.graph import END, StateGraph
from langgraph.graph.message import add_messages
from langgraph.prebuilt import ToolNode
from typing_extensions import TypedDict

from calendar_assistant.config import (
    AGENT_RECURSION_LIMIT,
    ANTHROPIC_API_KEY,
    GOOGLE_API_KEY,
    LLM_PROVIDER,
    MODEL_NAME,
)
from calendar_assistant.prompts import get_system_prompt
from calendar_assistant.services.metrics import metrics
from calendar_assistant.tools.appointments import APPOINTMENT_TOOLS

logger = logging.getLogger(__name__)

# Metrics service name per provider
_LLM_SERVICE = {"google": "gemini", "anthropic": "anthropic"}


class AgentState(TypedDict):
    """The state that flows through the graph.

    ``messages`` uses the LangGraph ``add_messages`` reducer so that each
    node can append messages without overwriting the full history.
    """

    messages: Annotated[list[AnyMessage], add_messages]


# ── LLM builder ─────────────────────────────────────────────────────


def _build_llm():
    """Build the chat model for the configured provider, bound to the tools."""
    if LLM_PROVIDER == "anthropic":
        llm = ChatAnthropic(
            model=MODEL_NAME,
            api_key=ANTHROPIC_API_KEY,
            temperature=0.1,
            max_tokens=1024,
        )
    else:
        llm = ChatGoogleGenerativeAI(
            model=MODEL_NAME,
            google_api_key=GOOGLE_API_KEY,
            temperature=0.1,
            max_output_tokens=1024,
        )
    return llm.bind_tools(APPOINTMENT_TOOLS)


# ── Node: chatbot ───────────────────────────────────────────────────


def _make_chatbot_node():
    """Create the chatbot node.

    The LLM + tool bindings are captured in the closure so that repeated
    node invocations (chatbot -> tools -> chatbot -> ...) share one client.
    """
    llm_with_tools = _build_llm()
    service = _LLM_SERVICE.get(LLM_PROVIDER, LLM_PROVIDER)

    def chatbot_node(state: AgentState) -> dict:
        """Invoke the LLM with the current conversation history."""
        logger.debug("chatbot node invoked — model: %s", MODEL_NAME)
        system = SystemMessage(content=get_system_prompt())
        t0 = time.perf_counter()
        try:
            response = llm_with_tools.invoke([system] + state["messages"])
        except Exception as exc:
            metrics.record_failure(
                service, "llm_invoke",
                error_type=type(exc).__name__,
                latency_ms=(time.perf_counter() - t0) * 1000,
            )
            raise
        elapsed = (time.perf_counter() - t0) * 1000
        metrics.record_success(service, "llm_invoke", latency_ms=elapsed)
        logger.debug(
            "chatbot responded in %.0fms (%d tool call(s))",
            elapsed, len(getattr(response, "tool_calls", None) or []),
        )
        return {"messages": [response]}

    return chatbot_node


# ── Conditional edge ────────────────────────────────────────────────


def should_use_tools(state: AgentState) -> str:
    """Check if the last message has tool calls; if so, route to tools node."""
    last_message = state["messages"][-1]
    if hasattr(last_message, "tool_calls") and last_message.tool_calls:
        return "tools"
    return END


# ── Graph assembly ───────────────────────────────────────────────────


def create_calendar_agent():
    """Build and compile the Calendar Assistant LangGraph agent.

    Returns a compiled graph; see :func:`run_agent` for how it is invoked.
    """
    graph = StateGraph(AgentState)

    graph.add_node("chatbot", _make_chatbot_node())
    # Unknown tool names and tool exceptions come back to the model as
    # error ToolMessages instead of aborting the turn.
    graph.add_node("tools", ToolNode(APPOINTMENT_TOOLS, handle_tool_errors=True))

    graph.set_entry_point("chatbot")
    graph.add_conditional_edges("chatbot", should_use_tools, {"tools": "tools", END: END})
    graph.add_edge("tools", "chatbot")

    compiled = graph.compile(checkpointer=MemorySaver())

    logger.debug(
        "Calendar agent compiled — provider: %s, model: %s, tools: %d",
        LLM_PROVIDER, MODEL_NAME, len(APPOINTMENT_TOOLS),
    )
    return compiled


# ── Invocation helpers ───────────────────────────────────────────────


def message_text(message: Any) -> str:
    """Return the plain text of a chat message.

    Gemini may return content as a list of parts; text parts are joined.
    """
    content = getattr(message, "content", message)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                parts.append(part.get("text", ""))
        return "".join(parts)
    return str(content)


def run_agent(agent, message: str, *, user_id: str, session_id: str) -> str:
    """Run one user turn through *agent* and return the final reply text.

    Raises:
        RuntimeError: the agent produced no messages.
    """
    result = agent.invoke(
        {"messages": [HumanMessage(content=message)]},
        config={
            "configurable": {"thread_id": session_id, "user_id": user_id},
            "recursion_limit": AGENT_RECURSION_LIMIT,
        },
    )
    messages = result.get("messages", [])
    if not messages:
        raise RuntimeError("Agent produced no response.")
    return message_text(messages[-1])
