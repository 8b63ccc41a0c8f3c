
from typing import Any, AsyncIterator, Callable, Dict, Mapping, Optional
from core.domain import StreamEvent


def _extract_text(data: Mapping[str, Any], key: str = 'chunk') -> Optional[str]:
    ch = data.get(key)
    if isinstance(ch, str):
        return ch or None

    text = getattr(ch, 'content', None)
    return text if isinstance(text, str) and text else None


async def adapt_events(stream: AsyncIterator[Dict[str, Any]]) -> AsyncIterator[StreamEvent]:
    """
    Turn langgraph `astream_events` (v2) output into token / reply_done events.
    """
    async for ev in stream:
        event = ev.get('event')
        data = ev.get('data') or {}

        if event == 'on_chat_model_stream':
            text = _extract_text(data)
            if text:
                yield {'type': 'token', 'text': text}

        elif event == 'on_chat_model_end':
            text = _extract_text(data, 'output')
            yield {'type': 'reply_done', 'text': text or ''}


async def collect_reply(stream: AsyncIterator[Dict[str, Any]],
                        on_token: Optional[Callable[[str], None]] = None) -> str:
    """
    Drain the stream, forwarding tokens to `on_token`, and return the full reply.

    The final message wins over the concatenated tokens when the model
    reports one.
    """
    buffer = ''
    final = ''
    async for ev in adapt_events(stream):
        if ev['type'] == 'token':
            buffer += ev['text']
            if on_token:
                on_token(ev['text'])
        elif ev['type'] == 'reply_done':
            final = ev['text']
    return final or buffer
