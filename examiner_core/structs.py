"""
EXAMINER Core Data Structures
=============================
Pydantic models for the interview session, the static catalogs and the
service request bodies.
"""

from enum import Enum
from typing import List, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field
import uuid

# ─── CONVERSATION ───────────────────────────────────────────────────────────

class Role(str, Enum):
    USER = "user"
    EXAMINER = "examiner"
    SYSTEM = "system"
    # Only seen on the wire, in pre-composed context (summary messages)
    ASSISTANT = "assistant"

class Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Role = Field(..., description="Who contributed the message")
    content: str = Field(..., description="Message text")

class ContextMode(str, Enum):
    FULL_HISTORY = "full_history"
    PRE_COMPOSED = "pre_composed"

# ─── CATALOG ENTRIES ────────────────────────────────────────────────────────

class PromptSpec(BaseModel):
    """One scripted examiner turn."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    instruction_text: str = Field(..., alias="prompt_text", description="System instruction dictating the examiner's line")
    temperature: float = Field(0.0, description="Forwarded verbatim to the completion gateway")
    model: Optional[str] = Field(None, description="Completion model; gateway default when unset")

class OutputContract(str, Enum):
    NUMERIC_BAND = "numeric-band-plus-feedback"
    FREE_TEXT = "free-text-only"

class RubricSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    criterion: str = Field(..., description="Scoring dimension label")
    prompt_template: str = Field(..., description="Template with a single {{TRANSCRIPT}} placeholder")
    output_contract: OutputContract = OutputContract.NUMERIC_BAND
    model: Optional[str] = None
    max_tokens: Optional[int] = Field(None, description="Output ceiling for this criterion")
    empty_feedback: str = Field("No feedback generated.", description="Free-text fallback when the model returns nothing")
    note: Optional[str] = Field(None, description="Appended to free-text feedback")

class RubricResult(BaseModel):
    criterion: str
    band_score: int = Field(0, ge=0, le=9, description="0 when not applicable or unparseable")
    feedback: str

# ─── AUDIO ──────────────────────────────────────────────────────────────────

class AudioClip(BaseModel):
    model_config = ConfigDict(frozen=True)

    data: bytes
    mime_type: str = "audio/webm"

class RecordingStatus(str, Enum):
    IDLE = "idle"
    AWAITING_PERMISSION = "awaiting_permission"
    RECORDING = "recording"
    STOPPED = "stopped"
    ERROR = "error"

# ─── SESSION STATE ──────────────────────────────────────────────────────────

class Phase(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    TRANSCRIBING = "transcribing"
    ASKING = "asking"
    SPEAKING = "speaking"
    PLAYING = "playing"
    FINISHED = "finished"
    PROCESSING_FEEDBACK = "processing_feedback"
    SHOW_RESULTS = "show_results"
    ERROR = "error"

TERMINAL_PHASES = (Phase.SHOW_RESULTS, Phase.ERROR)

class Session(BaseModel):
    """
    The single live interview. Immutable: every transition produces a new
    value, so the orchestrator is the only place a session ever changes.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    generation: int = Field(0, description="Bumped on every full reset")

    topic: Optional[str] = None
    prompts: Tuple[PromptSpec, ...] = ()
    turn_index: int = 0
    phase: Phase = Phase.IDLE

    history: Tuple[Message, ...] = ()
    last_error: Optional[str] = None

    transcript: Optional[str] = None
    results: Tuple[RubricResult, ...] = ()

    @property
    def last_index(self) -> int:
        return len(self.prompts) - 1

    @property
    def current_prompt(self) -> Optional[PromptSpec]:
        if 0 <= self.turn_index < len(self.prompts):
            return self.prompts[self.turn_index]
        return None

# ─── SERVICE REQUEST BODIES ─────────────────────────────────────────────────

class AskRequest(BaseModel):
    prompt: PromptSpec
    history: List[Message] = Field(default_factory=list)
    mode: ContextMode = ContextMode.FULL_HISTORY

class SpeakRequest(BaseModel):
    text: Optional[str] = None

class SummarizeRequest(BaseModel):
    messages: List[Message] = Field(default_factory=list)

class PipelineRequest(BaseModel):
    transcript: Optional[str] = None
