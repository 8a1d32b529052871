"""
EXAMINER Turn Orchestrator
==========================
Owns the live interview session and drives it through the turn state machine:
- Topic selection & script binding on a new interview
- One gateway call per phase (capture, transcribe, ask, speak, score)
- Turn advancement on playback completion only
- Stale-result discard once the session has moved on (reset, abandoned capture)
"""

import random
import logging
from typing import Awaitable, Callable, Dict, List, Mapping, Optional, Sequence

from .capture import Recorder, AudioPlayer
from .config import ASK_MAX_TOKENS, CONTEXT_MODE
from .context import ContextComposer, Summarizer, assemble_messages
from .errors import StateIntegrityError
from .feedback import FeedbackPipeline
from .llm_gateway import llm_gateway, AsyncLLMGateway
from .prompts import TOPIC_PROMPT_SETS
from .speech import transcription_gateway, speech_gateway, TranscriptionGateway, SpeechGateway
from .state_machine import (
    Event, StartInterview, StartTurn, StopRecording, Transcribed, QuestionReady,
    PlaybackStarted, PlaybackEnded, FeedbackRequested, FeedbackReady, Failed,
    advance, build_transcript, latest_examiner_message
)
from .structs import ContextMode, Message, Phase, PromptSpec, Session, TERMINAL_PHASES

logger = logging.getLogger(__name__)

FAILURE_PREFIXES = {
    Phase.RECORDING: "Microphone Error",
    Phase.TRANSCRIBING: "Transcription failed",
    Phase.ASKING: "Ask failed",
    Phase.SPEAKING: "Speak failed",
    Phase.PROCESSING_FEEDBACK: "Feedback failed",
}


class TurnOrchestrator:
    """
    The brain of the speaking test. Coordinates recorder, gateways and player
    around a single Session that nothing else writes to.
    """

    def __init__(
        self,
        recorder: Recorder,
        player: AudioPlayer,
        completion: Optional[AsyncLLMGateway] = None,
        transcriber: Optional[TranscriptionGateway] = None,
        speaker: Optional[SpeechGateway] = None,
        feedback: Optional[FeedbackPipeline] = None,
        composer: Optional[ContextComposer] = None,
        catalog: Optional[Mapping[str, Sequence[PromptSpec]]] = None,
        choose: Callable[[List[str]], str] = random.choice,
        context_mode: str = CONTEXT_MODE
    ):
        self.catalog = dict(TOPIC_PROMPT_SETS if catalog is None else catalog)
        if not self.catalog:
            raise ValueError("No prompt topics found")

        self.recorder = recorder
        self.player = player
        self.completion = completion or llm_gateway
        self.transcriber = transcriber or transcription_gateway
        self.speaker = speaker or speech_gateway
        self.feedback = feedback or FeedbackPipeline(self.completion)
        self.context_mode = ContextMode(context_mode)
        self.composer = composer
        if self.composer is None and self.context_mode is ContextMode.PRE_COMPOSED:
            self.composer = ContextComposer(Summarizer(self.completion))
        self._choose = choose

        self.session = Session()

        self._effects: Dict[Phase, Callable[[Session], Awaitable[Optional[Event]]]] = {
            Phase.RECORDING: self._begin_capture,
            Phase.TRANSCRIBING: self._transcribe,
            Phase.ASKING: self._ask,
            Phase.SPEAKING: self._speak,
            Phase.FINISHED: self._request_feedback,
            Phase.PROCESSING_FEEDBACK: self._score,
            Phase.ERROR: self._release_capture,
        }

    # ── USER & HOST SIGNALS ──

    async def press(self):
        """The single mic button: new interview, next turn, or stop recording."""
        phase = self.session.phase
        if phase in TERMINAL_PHASES or (phase is Phase.IDLE and self.session.turn_index == 0):
            await self.start_interview()
        elif phase is Phase.IDLE:
            await self.dispatch(StartTurn())
        elif phase is Phase.RECORDING:
            await self.dispatch(StopRecording())
        else:
            logger.warning(f"Session {self.session.id}: ignoring mic press while {phase.value}")

    async def start_interview(self):
        self.recorder.release()
        topic = self._choose(list(self.catalog))
        logger.info(f"Selected Topic: {topic}")
        await self.dispatch(StartInterview(topic=topic, prompts=tuple(self.catalog[topic])))

    async def playback_finished(self):
        """Called by the host once the examiner's audio has played to the end."""
        await self.dispatch(PlaybackEnded())

    def reset(self):
        """Abandon the interview; anything still in flight is discarded on arrival."""
        self.recorder.release()
        self.session = Session(generation=self.session.generation + 1)
        logger.info(f"Session reset (generation {self.session.generation})")

    # ── DISPATCH LOOP ──

    async def dispatch(self, event: Event):
        pending: Optional[Event] = event
        while pending is not None:
            self.session = advance(self.session, pending)
            current = self.session
            pending = await self._run_effect(current)
            if self.session is not current:
                # A reset or another signal moved the session on while the effect was in flight
                logger.info(
                    f"Discarding {current.phase.value} result for superseded session state "
                    f"(generation {current.generation})"
                )
                return

    async def _run_effect(self, session: Session) -> Optional[Event]:
        effect = self._effects.get(session.phase)
        if effect is None:
            return None
        try:
            return await effect(session)
        except Exception as e:
            message = getattr(e, "message", None) or str(e)
            logger.error(f"Session {session.id}: {session.phase.value} failed: {message}")
            return Failed(error=f"{FAILURE_PREFIXES.get(session.phase, 'Error')}: {message}")

    # ── PHASE EFFECTS ──

    async def _begin_capture(self, session: Session) -> None:
        await self.recorder.start()

    async def _transcribe(self, session: Session) -> Event:
        clip = await self.recorder.stop()
        text = await self.transcriber.transcribe(clip.data, clip.mime_type)
        return Transcribed(text=text)

    async def build_context(self, prompt: PromptSpec, history: Sequence[Message]) -> List[Dict[str, str]]:
        if self.context_mode is ContextMode.PRE_COMPOSED:
            composed = await self.composer.compose(prompt.instruction_text, history)
            return assemble_messages(prompt.instruction_text, composed, ContextMode.PRE_COMPOSED)
        return assemble_messages(prompt.instruction_text, history)

    async def _ask(self, session: Session) -> Event:
        prompt = session.current_prompt
        if prompt is None:
            raise StateIntegrityError(f"No active prompt found for turn {session.turn_index}.")

        messages = await self.build_context(prompt, session.history)
        question = await self.completion.complete(
            messages,
            model=prompt.model,
            temperature=prompt.temperature,
            max_tokens=ASK_MAX_TOKENS
        )
        logger.info(f"Session {session.id}: examiner turn {session.turn_index}: {question!r}")
        return QuestionReady(text=question)

    async def _speak(self, session: Session) -> Optional[Event]:
        message = latest_examiner_message(session.history)
        if message is None:
            raise StateIntegrityError("Cannot speak: No examiner question found.")

        audio = await self.speaker.synthesize(message.content)
        if self.session is not session:
            return None
        await self.player.play(audio)
        return PlaybackStarted()

    async def _request_feedback(self, session: Session) -> Event:
        return FeedbackRequested(transcript=build_transcript(session.history))

    async def _score(self, session: Session) -> Event:
        results = await self.feedback.run(session.transcript)
        return FeedbackReady(results=tuple(results))

    async def _release_capture(self, session: Session) -> None:
        self.recorder.release()
