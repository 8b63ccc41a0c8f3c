"""Tests for the model-backed generator and its event adapter.

No network: the chat model is langchain's FakeListChatModel and the event
streams are hand-built.
"""

from __future__ import annotations

import json

import pytest
from langchain_core.language_models.fake_chat_models import FakeListChatModel
from langchain_core.messages import AIMessage, AIMessageChunk, HumanMessage

from core.agents.query_writer import QueryWriter, parse_draft, transcript_messages
from core.collaborators import DEMO_TRANSCRIPT
from core.errors import GenerationError
from core.langgraph_adapter import adapt_events, collect_reply
from core.turn_store import TurnStore
from models import DatabaseType


def _reply(**fields) -> str:
    return json.dumps(fields)


async def _events(*evs):
    for ev in evs:
        yield ev


class TestParseDraft:
    def test_plain_json(self):
        draft = parse_draft(_reply(query="SELECT 1;", explanation="one"))

        assert draft.content == "SELECT 1;"
        assert draft.explanation == "one"
        assert draft.preview is None

    def test_fenced_json(self):
        text = "```json\n" + _reply(query="SELECT 2;", explanation="two") + "\n```"

        assert parse_draft(text).content == "SELECT 2;"

    def test_preview_tables(self):
        draft = parse_draft(_reply(
            query="UPDATE t SET a = 2;",
            explanation="",
            preview={
                "title": "1 row affected",
                "before": {"columns": ["a"], "rows": [[1]]},
                "after": {"headers": ["a"], "rows": [[2]]},
            },
        ))

        assert draft.preview.title == "1 row affected"
        assert draft.preview.before.rows == ((1,),)
        assert draft.preview.after.columns == ("a",)
        assert draft.preview.is_comparison

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "not json at all",
            "[1, 2]",
            _reply(explanation="no query"),
            _reply(query="   "),
            _reply(query="x", preview={"before": {"columns": "a", "rows": []}}),
        ],
    )
    def test_unusable_replies(self, text):
        with pytest.raises(GenerationError):
            parse_draft(text)


class TestTranscriptMessages:
    def test_roles_map_to_chat_messages(self):
        turns = TurnStore(DEMO_TRANSCRIPT).snapshot()

        msgs = transcript_messages(turns, "next please")

        assert [type(m) for m in msgs] == [HumanMessage, AIMessage, HumanMessage, AIMessage, HumanMessage]
        assert msgs[-1].content == "next please"
        assert json.loads(msgs[1].content)["query"] == turns[1].content


class TestAdapter:
    async def test_tokens_and_final_message(self):
        stream = _events(
            {"event": "on_chain_start", "data": {}},
            {"event": "on_chat_model_stream", "data": {"chunk": AIMessageChunk(content="SEL")}},
            {"event": "on_chat_model_stream", "data": {"chunk": AIMessageChunk(content="")}},
            {"event": "on_chat_model_stream", "data": {"chunk": "ECT"}},
            {"event": "on_chat_model_end", "data": {"output": AIMessage(content="SELECT")}},
        )

        events = [ev async for ev in adapt_events(stream)]

        assert events == [
            {"type": "token", "text": "SEL"},
            {"type": "token", "text": "ECT"},
            {"type": "reply_done", "text": "SELECT"},
        ]

    async def test_collect_reply_forwards_tokens(self):
        seen = []
        stream = _events(
            {"event": "on_chat_model_stream", "data": {"chunk": AIMessageChunk(content="a")}},
            {"event": "on_chat_model_stream", "data": {"chunk": AIMessageChunk(content="b")}},
        )

        text = await collect_reply(stream, seen.append)

        assert text == "ab"
        assert seen == ["a", "b"]

    async def test_final_message_wins(self):
        stream = _events(
            {"event": "on_chat_model_stream", "data": {"chunk": "partial"}},
            {"event": "on_chat_model_end", "data": {"output": AIMessage(content="complete")}},
        )

        assert await collect_reply(stream) == "complete"


class TestQueryWriter:
    async def test_generate_with_fake_model(self):
        llm = FakeListChatModel(responses=[_reply(query="SELECT * FROM users;", explanation="all users")])
        writer = QueryWriter(llm=llm)

        draft = await writer.generate("everyone", (), database=DatabaseType.POSTGRESQL)

        assert draft.content == "SELECT * FROM users;"
        assert draft.explanation == "all users"

    async def test_streaming_path(self):
        llm = FakeListChatModel(responses=[_reply(query="SELECT 1;", explanation="one")])
        tokens = []
        writer = QueryWriter(llm=llm, on_token=tokens.append)

        draft = await writer.generate("one", TurnStore(DEMO_TRANSCRIPT).snapshot())

        assert draft.content == "SELECT 1;"
        assert "".join(tokens) == _reply(query="SELECT 1;", explanation="one")

    async def test_bad_reply_is_generation_error(self):
        writer = QueryWriter(llm=FakeListChatModel(responses=["sorry, I can't"]))

        with pytest.raises(GenerationError):
            await writer.generate("x", ())
