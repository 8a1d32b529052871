"""
EXAMINER Turn State Machine
===========================
Pure transitions: advance(session, event) -> new session. No I/O happens
here; the orchestrator performs the gateway call a phase implies and feeds
the outcome back in as the next event.

    idle -> recording -> transcribing -> asking -> speaking -> playing -> idle | finished
    finished -> processing_feedback -> show_results
    any non-terminal phase -> error
"""

import logging
from typing import Callable, Dict, Optional, Sequence, Tuple, Type

from pydantic import BaseModel, ConfigDict

from .errors import TransitionError
from .structs import Message, Phase, PromptSpec, Role, RubricResult, Session, TERMINAL_PHASES

logger = logging.getLogger(__name__)

# ─── EVENTS ─────────────────────────────────────────────────────────────────

class Event(BaseModel):
    model_config = ConfigDict(frozen=True)

class StartInterview(Event):
    topic: str
    prompts: Tuple[PromptSpec, ...]

class StartTurn(Event):
    pass

class StopRecording(Event):
    pass

class Transcribed(Event):
    text: str

class QuestionReady(Event):
    text: str

class PlaybackStarted(Event):
    pass

class PlaybackEnded(Event):
    pass

class FeedbackRequested(Event):
    transcript: str

class FeedbackReady(Event):
    results: Tuple[RubricResult, ...]

class Failed(Event):
    error: str

# ─── HELPERS ────────────────────────────────────────────────────────────────

def build_transcript(history: Sequence[Message]) -> str:
    """The candidate's answers, in order, one paragraph each."""
    return "\n\n".join(m.content for m in history if m.role is Role.USER)


def latest_examiner_message(history: Sequence[Message]) -> Optional[Message]:
    for message in reversed(history):
        if message.role is Role.EXAMINER:
            return message
    return None


def _fail(session: Session, error: str) -> Session:
    return session.model_copy(update={"phase": Phase.ERROR, "last_error": error})

# ─── TRANSITIONS ────────────────────────────────────────────────────────────

def _start_interview(session: Session, event: StartInterview) -> Session:
    if session.phase is Phase.IDLE and session.turn_index != 0:
        raise TransitionError("A new interview cannot start in the middle of one")
    return Session(
        generation=session.generation + 1,
        topic=event.topic,
        prompts=event.prompts,
        phase=Phase.RECORDING
    )


def _start_turn(session: Session, event: StartTurn) -> Session:
    if session.turn_index == 0:
        raise TransitionError("The first turn starts a new interview")
    return session.model_copy(update={"phase": Phase.RECORDING, "last_error": None})


def _stop_recording(session: Session, event: StopRecording) -> Session:
    return session.model_copy(update={"phase": Phase.TRANSCRIBING})


def _transcribed(session: Session, event: Transcribed) -> Session:
    text = event.text.strip()
    if not text:
        return _fail(session, "Transcription returned an empty transcript.")
    return session.model_copy(update={
        "phase": Phase.ASKING,
        "history": session.history + (Message(role=Role.USER, content=text),)
    })


def _question_ready(session: Session, event: QuestionReady) -> Session:
    text = event.text.strip()
    if not text:
        return _fail(session, "Completion returned an empty question.")
    return session.model_copy(update={
        "phase": Phase.SPEAKING,
        "history": session.history + (Message(role=Role.EXAMINER, content=text),)
    })


def _playback_started(session: Session, event: PlaybackStarted) -> Session:
    return session.model_copy(update={"phase": Phase.PLAYING})


def _playback_ended(session: Session, event: PlaybackEnded) -> Session:
    if session.turn_index < session.last_index:
        return session.model_copy(update={"phase": Phase.IDLE, "turn_index": session.turn_index + 1})
    return session.model_copy(update={"phase": Phase.FINISHED})


def _feedback_requested(session: Session, event: FeedbackRequested) -> Session:
    if not event.transcript:
        return _fail(session, "Cannot process feedback: No user responses found in history.")
    return session.model_copy(update={"phase": Phase.PROCESSING_FEEDBACK, "transcript": event.transcript})


def _feedback_ready(session: Session, event: FeedbackReady) -> Session:
    return session.model_copy(update={"phase": Phase.SHOW_RESULTS, "results": event.results})


TRANSITIONS: Dict[Tuple[Phase, Type[Event]], Callable[[Session, Event], Session]] = {
    (Phase.IDLE, StartInterview): _start_interview,
    (Phase.ERROR, StartInterview): _start_interview,
    (Phase.SHOW_RESULTS, StartInterview): _start_interview,
    (Phase.IDLE, StartTurn): _start_turn,
    (Phase.RECORDING, StopRecording): _stop_recording,
    (Phase.TRANSCRIBING, Transcribed): _transcribed,
    (Phase.ASKING, QuestionReady): _question_ready,
    (Phase.SPEAKING, PlaybackStarted): _playback_started,
    (Phase.PLAYING, PlaybackEnded): _playback_ended,
    (Phase.FINISHED, FeedbackRequested): _feedback_requested,
    (Phase.PROCESSING_FEEDBACK, FeedbackReady): _feedback_ready,
}


def advance(session: Session, event: Event) -> Session:
    if isinstance(event, Failed):
        if session.phase in TERMINAL_PHASES:
            raise TransitionError(f"Session already {session.phase.value}")
        new_session = _fail(session, event.error)
    else:
        handler = TRANSITIONS.get((session.phase, type(event)))
        if handler is None:
            raise TransitionError(f"{type(event).__name__} is not valid while {session.phase.value}")
        new_session = handler(session, event)

    logger.info(f"Session {new_session.id}: {session.phase.value} -> {new_session.phase.value} (turn {new_session.turn_index})")
    return new_session
