import json
import re
from typing import Annotated, Callable, Optional, Sequence, TypedDict

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from langgraph.graph import END, START, StateGraph
from langgraph.graph.message import add_messages

from core.errors import GenerationError
from core.langgraph_adapter import collect_reply
from models import DatabaseType, Draft, Preview, TableData, Turn


SYSTEM_PROMPT = """You are a database query assistant for {database}.
Turn the user's request into a single query for that database.

Reply with ONE JSON object and nothing else:
{{"query": "<the query>",
  "explanation": "<two or three sentences on what the query does>",
  "preview": null}}

When the query modifies data, "preview" may instead describe the affected rows:
{{"title": "...", "before": {{"columns": [...], "rows": [[...]]}}, "after": {{"columns": [...], "rows": [[...]]}}}}
"""

REGENERATE_HINT = "The user asked for this query again. Offer a different valid formulation."


class WriterState(TypedDict):
    messages: Annotated[list[BaseMessage], add_messages]
    database: str


def build_llm(model: str, temperature=0) -> BaseChatModel:
    return ChatOpenAI(
        model=model,
        temperature=temperature,
        streaming=True,
    )


def writer_factory(llm: BaseChatModel):
    async def writer(state: WriterState):
        msgs = [SystemMessage(SYSTEM_PROMPT.format(database=state['database'])), *state['messages']]
        ai_msg = await llm.ainvoke(msgs)
        return {'messages': [ai_msg]}
    return writer


def build_agent(llm: BaseChatModel):
    graph_builder = StateGraph(WriterState)
    graph_builder.add_node('writer', writer_factory(llm))
    graph_builder.add_edge(START, 'writer')
    graph_builder.add_edge('writer', END)
    return graph_builder.compile(name='query_writer_agent')


def transcript_messages(transcript: Sequence[Turn], request_text: str) -> list[BaseMessage]:
    """Replay earlier turns as chat history so follow-up requests have context."""
    msgs: list[BaseMessage] = []
    for turn in transcript:
        if turn.is_request:
            msgs.append(HumanMessage(content=turn.content))
        else:
            msgs.append(AIMessage(content=json.dumps(
                {'query': turn.content, 'explanation': turn.explanation or ''})))
    msgs.append(HumanMessage(content=request_text))
    return msgs


_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")


def _table(raw) -> Optional[TableData]:
    if not isinstance(raw, dict):
        return None
    columns = raw.get('columns') or raw.get('headers') or []
    rows = raw.get('rows') or []
    if not isinstance(columns, list) or not isinstance(rows, list):
        raise GenerationError('preview table must have list columns and rows')
    return TableData.of([str(c) for c in columns], [r for r in rows if isinstance(r, list)])


def parse_draft(text: str) -> Draft:
    """
    Parse the model's JSON reply. Anything unusable is a GenerationError.
    """
    body = _FENCE.sub('', (text or '').strip())
    if not body:
        raise GenerationError('model returned an empty reply')
    try:
        data = json.loads(body)
    except json.JSONDecodeError as e:
        raise GenerationError(f'model reply is not JSON: {e}') from e
    if not isinstance(data, dict):
        raise GenerationError('model reply must be a JSON object')

    query = data.get('query')
    if not isinstance(query, str) or not query.strip():
        raise GenerationError('model reply has no query')
    explanation = data.get('explanation') or ''

    preview = None
    raw_preview = data.get('preview')
    if isinstance(raw_preview, dict):
        preview = Preview(
            before=_table(raw_preview.get('before')),
            after=_table(raw_preview.get('after')),
            title=raw_preview.get('title'),
        )
    return Draft(content=query.strip(), explanation=str(explanation), preview=preview)


class QueryWriter:
    """
    Generator backed by a chat model. Tokens are forwarded to `on_token`
    while the reply streams in, when a callback is given.
    """

    def __init__(self, model: str = 'gpt-4o', llm: Optional[BaseChatModel] = None,
                 on_token: Optional[Callable[[str], None]] = None):
        self.agent = build_agent(llm if llm is not None else build_llm(model))
        self.on_token = on_token

    async def generate(self, request_text: str, transcript: Sequence[Turn], *,
                       database: DatabaseType = DatabaseType.SQL, regenerating: bool = False) -> Draft:
        messages = transcript_messages(transcript, request_text)
        if regenerating:
            messages.append(SystemMessage(REGENERATE_HINT))
        payload = {
            'messages': messages,
            'database': database.value,
        }
        try:
            if self.on_token:
                stream = self.agent.astream_events(payload, version='v2')
                text = await collect_reply(stream, self.on_token)
            else:
                state = await self.agent.ainvoke(payload)
                text = state['messages'][-1].content
        except Exception as e:
            raise GenerationError(f'model call failed: {e}') from e
        return parse_draft(text if isinstance(text, str) else '')
