"""Tests for the function-calling agent.

Covers:
  - Chatbot node behaviour with a mocked LLM
  - Tool routing
  - End-to-end graph runs with a mocked LLM and an in-memory store
"""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage, ToolMessage
from langgraph.graph import END

from calendar_assistant.agent import (
    AgentState,
    _build_llm,
    _make_chatbot_node,
    create_calendar_agent,
    message_text,
    run_agent,
    should_use_tools,
)

# ── Helpers ──────────────────────────────────────────────────────────


def _make_mock_llm(response_content: str, tool_calls: list | None = None):
    """Create a mock LLM that returns a fixed AIMessage."""
    mock_llm = MagicMock()
    mock_llm.invoke.return_value = AIMessage(content=response_content, tool_calls=tool_calls or [])
    return mock_llm


def _tool_call(name: str, args: dict, call_id: str) -> dict:
    return {"name": name, "args": args, "id": call_id}


# ── TestBuildLLM ─────────────────────────────────────────────────────


class TestBuildLLM:
    @patch("calendar_assistant.agent.ChatGoogleGenerativeAI")
    def test_google_provider_uses_gemini(self, mock_gemini):
        with patch("calendar_assistant.agent.LLM_PROVIDER", "google"):
            llm = _build_llm()

        mock_gemini.assert_called_once()
        assert llm is mock_gemini.return_value.bind_tools.return_value
        bound = mock_gemini.return_value.bind_tools.call_args[0][0]
        assert [t.name for t in bound] == [
            "schedule_appointment", "get_appointments", "delete_appointment",
        ]

    @patch("calendar_assistant.agent.ChatGoogleGenerativeAI")
    @patch("calendar_assistant.agent.ChatAnthropic")
    def test_anthropic_provider_uses_claude(self, mock_claude, mock_gemini):
        with patch("calendar_assistant.agent.LLM_PROVIDER", "anthropic"):
            _build_llm()

        mock_claude.assert_called_once()
        mock_gemini.assert_not_called()


# ── TestChatbotNode ──────────────────────────────────────────────────


class TestChatbotNode:
    @patch("calendar_assistant.agent._build_llm")
    def test_prepends_system_prompt(self, mock_build):
        mock_llm = _make_mock_llm("Hi! How can I help with your calendar?")
        mock_build.return_value = mock_llm
        chatbot = _make_chatbot_node()

        state: AgentState = {"messages": [HumanMessage(content="Hello")]}
        result = chatbot(state)

        sent = mock_llm.invoke.call_args[0][0]
        assert isinstance(sent[0], SystemMessage)
        assert "calendar" in sent[0].content.lower()
        assert sent[1].content == "Hello"
        assert result["messages"][0].content == "Hi! How can I help with your calendar?"

    @patch("calendar_assistant.agent.metrics")
    @patch("calendar_assistant.agent._build_llm")
    def test_llm_error_recorded_and_raised(self, mock_build, mock_metrics):
        mock_llm = MagicMock()
        mock_llm.invoke.side_effect = TimeoutError("model timed out")
        mock_build.return_value = mock_llm
        chatbot = _make_chatbot_node()

        with pytest.raises(TimeoutError):
            chatbot({"messages": [HumanMessage(content="Hello")]})

        mock_metrics.record_failure.assert_called_once()
        assert mock_metrics.record_failure.call_args.kwargs["error_type"] == "TimeoutError"


# ── TestToolRouting ──────────────────────────────────────────────────


class TestToolRouting:
    def test_routes_to_tools_when_tool_calls_present(self):
        msg = AIMessage(content="", tool_calls=[_tool_call("get_appointments", {}, "call_1")])
        assert should_use_tools({"messages": [msg]}) == "tools"

    def test_routes_to_end_without_tool_calls(self):
        assert should_use_tools({"messages": [AIMessage(content="Done!")]}) == END


# ── TestMessageText ──────────────────────────────────────────────────


class TestMessageText:
    def test_plain_string(self):
        assert message_text(AIMessage(content="Hello")) == "Hello"

    def test_list_of_parts(self):
        msg = AIMessage(content=[
            {"type": "text", "text": "You have "},
            {"type": "thinking", "thinking": "..."},
            "2 appointments.",
        ])
        assert message_text(msg) == "You have 2 appointments."


# ── TestRunAgent ─────────────────────────────────────────────────────


class TestRunAgent:
    def test_passes_session_and_user(self):
        agent = MagicMock()
        agent.invoke.return_value = {"messages": [AIMessage(content="Sure!")]}

        reply = run_agent(agent, "Hi", user_id="alice", session_id="s-1")

        assert reply == "Sure!"
        config = agent.invoke.call_args.kwargs["config"]
        assert config["configurable"] == {"thread_id": "s-1", "user_id": "alice"}
        assert config["recursion_limit"] > 0

    def test_no_messages_raises(self):
        agent = MagicMock()
        agent.invoke.return_value = {"messages": []}
        with pytest.raises(RuntimeError):
            run_agent(agent, "Hi", user_id="alice", session_id="s-1")


# ── TestEndToEnd ─────────────────────────────────────────────────────


class TestEndToEnd:
    """Run the compiled graph with a scripted LLM and a mongomock store."""

    @pytest.fixture(autouse=True)
    def _services(self, appointment_store):
        calendar = MagicMock()
        calendar.create_event.return_value = None
        with (
            patch("calendar_assistant.tools.appointments.get_appointment_store",
                  return_value=appointment_store),
            patch("calendar_assistant.tools.appointments.get_calendar_client",
                  return_value=calendar),
        ):
            yield

    def _run(self, responses: list[AIMessage], message: str, user_id: str = "alice"):
        mock_llm = MagicMock()
        mock_llm.invoke.side_effect = responses
        with patch("calendar_assistant.agent._build_llm", return_value=mock_llm):
            agent = create_calendar_agent()
            reply = run_agent(agent, message, user_id=user_id, session_id="session-1")
        return reply, mock_llm

    @staticmethod
    def _tool_messages(mock_llm, call_index: int) -> list[ToolMessage]:
        sent = mock_llm.invoke.call_args_list[call_index][0][0]
        return [m for m in sent if isinstance(m, ToolMessage)]

    def test_schedules_for_the_requesting_user(self, appointment_store):
        reply, _ = self._run(
            [
                AIMessage(content="", tool_calls=[_tool_call(
                    "schedule_appointment",
                    {"title": "Dentist", "date": "2026-10-20", "time": "14:00"},
                    "call_1",
                )]),
                AIMessage(content="Your dentist appointment is booked."),
            ],
            "Book a dentist appointment on Oct 20 at 2pm",
        )

        assert reply == "Your dentist appointment is booked."
        assert [a["title"] for a in appointment_store.list_for_user("alice")] == ["Dentist"]

    def test_every_tool_result_returned_to_model(self, appointment_store):
        appointment_store.insert("alice", "Gym", "2026-10-19", "18:00")
        _, mock_llm = self._run(
            [
                AIMessage(content="", tool_calls=[
                    _tool_call("get_appointments", {}, "call_1"),
                    _tool_call("delete_appointment", {"identifier": "Gym"}, "call_2"),
                ]),
                AIMessage(content="Removed your gym session."),
            ],
            "Show my appointments and cancel the gym",
        )

        tool_msgs = self._tool_messages(mock_llm, 1)
        assert {m.tool_call_id for m in tool_msgs} == {"call_1", "call_2"}
        listed = json.loads(next(m for m in tool_msgs if m.tool_call_id == "call_1").content)
        assert listed["success"] is True
        assert appointment_store.count_for_user("alice") == 0

    def test_unknown_tool_returns_error_to_model(self):
        reply, mock_llm = self._run(
            [
                AIMessage(content="", tool_calls=[_tool_call("book_flight", {}, "call_1")]),
                AIMessage(content="I can only manage appointments."),
            ],
            "Book me a flight",
        )

        assert reply == "I can only manage appointments."
        tool_msgs = self._tool_messages(mock_llm, 1)
        assert len(tool_msgs) == 1
        assert tool_msgs[0].status == "error"

    def test_conversation_memory_per_session(self):
        mock_llm = MagicMock()
        mock_llm.invoke.side_effect = [AIMessage(content="Hello!"), AIMessage(content="Still here.")]
        with patch("calendar_assistant.agent._build_llm", return_value=mock_llm):
            agent = create_calendar_agent()
            run_agent(agent, "Hi", user_id="alice", session_id="s-1")
            run_agent(agent, "Are you there?", user_id="alice", session_id="s-1")

        second_turn = mock_llm.invoke.call_args_list[1][0][0]
        human = [m.content for m in second_turn if isinstance(m, HumanMessage)]
        assert human == ["Hi", "Are you there?"]
