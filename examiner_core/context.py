"""
EXAMINER Conversational Context
===============================
Builds the exact message list sent to the completion gateway when the
examiner's next line is requested.

- full_history: current instruction + the whole raw conversation
- pre_composed: the caller hands in a finished list (instruction, optional
  summary of older turns, most recent turns); only roles are remapped

`ContextComposer` produces the pre-composed list, using `Summarizer` to fold
older turns into one message.
"""

import re
import logging
from typing import Dict, List, Optional, Sequence, Tuple

from .config import SUMMARY_MODEL, SUMMARY_TEMPERATURE, SUMMARY_MAX_TOKENS, CONTEXT_RECENT_MESSAGES, SUMMARY_ROLE
from .errors import InputValidationError, EmptyResultError
from .llm_gateway import llm_gateway, AsyncLLMGateway
from .structs import Message, Role, ContextMode

logger = logging.getLogger(__name__)

ROLE_MAP: Dict[Role, str] = {
    Role.EXAMINER: "assistant",
    Role.ASSISTANT: "assistant",
    Role.USER: "user",
    Role.SYSTEM: "system",
}


def to_chat_message(message: Message) -> Dict[str, str]:
    return {"role": ROLE_MAP[message.role], "content": message.content}


def assemble_messages(
    instruction_text: str,
    history: Sequence[Message],
    mode: ContextMode = ContextMode.FULL_HISTORY
) -> List[Dict[str, str]]:
    """
    In pre-composed mode `history` is already the complete context and
    `instruction_text` is expected to be inside it.
    """
    messages = [to_chat_message(m) for m in history]
    if mode is ContextMode.FULL_HISTORY:
        messages.insert(0, {"role": "system", "content": instruction_text})
    return messages


# ── SUMMARIZATION ──

SUMMARY_INSTRUCTION = """You are an AI assistant tasked with summarizing a conversation between a user and an examiner.
Your goal is to create a concise, factual summary that captures the main topics discussed and key points made by both participants.
This summary will be used to provide context to a language model for future turns in the conversation.
Focus on retaining important details relevant to the ongoing dialogue.
The summary should be a continuous paragraph, starting directly with the summary content.
Do NOT include any introductory phrases like "Here is a summary:" or "The conversation discussed:".
Do NOT add any conversational elements or questions. Just the summary.

Example summary: "The user discussed their hobbies, mentioning a passion for painting and how it helps them relax. The examiner asked about their inspiration and the user shared details about nature as a muse."
"""

_META_PREFIX_RE = re.compile(r"^\s*(?:here is|here's|below is)\s+(?:a|the)\b[^:\n]*summary[^:\n]*:\s*", re.IGNORECASE)


class Summarizer:

    def __init__(self, completion: Optional[AsyncLLMGateway] = None, model: str = SUMMARY_MODEL):
        self.completion = completion or llm_gateway
        self.model = model

    async def summarize(self, messages: Sequence[Message]) -> str:
        """Fold a message range into one dense paragraph of plain prose."""
        if not messages:
            raise InputValidationError("No messages provided for summarization")

        logger.info(f"Summarizing {len(messages)} messages...")
        payload = [{"role": "system", "content": SUMMARY_INSTRUCTION}]
        payload.extend(to_chat_message(m) for m in messages)

        summary = await self.completion.complete(
            payload,
            model=self.model,
            temperature=SUMMARY_TEMPERATURE,
            max_tokens=SUMMARY_MAX_TOKENS
        )
        summary = _META_PREFIX_RE.sub("", summary, count=1).strip()
        if not summary:
            raise EmptyResultError("Failed to generate summary from LLM")
        return summary


class ContextComposer:
    """
    Instruction first, then one summary message standing in for everything
    but the last `recent_messages` turns, then those turns verbatim.
    """

    def __init__(
        self,
        summarizer: Optional[Summarizer] = None,
        recent_messages: int = CONTEXT_RECENT_MESSAGES,
        summary_role: str = SUMMARY_ROLE
    ):
        self.summarizer = summarizer or Summarizer()
        self.recent_messages = max(recent_messages, 0)
        self.summary_role = Role(summary_role)
        self._cached: Optional[Tuple[Tuple[Tuple[str, str], ...], str]] = None

    def split(self, history: Sequence[Message]) -> Tuple[List[Message], List[Message]]:
        history = list(history)
        if self.recent_messages == 0:
            return history, []
        if len(history) <= self.recent_messages:
            return [], history
        return history[:-self.recent_messages], history[-self.recent_messages:]

    async def compose(self, instruction_text: str, history: Sequence[Message]) -> List[Message]:
        older, recent = self.split(history)
        composed = [Message(role=Role.SYSTEM, content=instruction_text)]
        if older:
            composed.append(Message(role=self.summary_role, content=await self._summary_for(older)))
        composed.extend(recent)
        return composed

    async def _summary_for(self, older: List[Message]) -> str:
        # History is append-only, so an identical prefix means an identical summary.
        key = tuple((m.role.value, m.content) for m in older)
        if self._cached and self._cached[0] == key:
            return self._cached[1]
        summary = await self.summarizer.summarize(older)
        self._cached = (key, summary)
        return summary
