"""
RAPID Dispatch Console - Call Session Controller

Top-level state machine of an operator console. Owns the call session,
decides when the transcript warrants a new classification, fuses results
with the hybrid scorer and enforces the lifecycle rules.

Lifecycle:

    IDLE --start--> ACTIVE --takeover--> TAKEOVER
                      |                     |
                      +------dispatch-------+--> DISPATCHED
    any state --reset--> IDLE

Concurrency:
    Everything runs on one event loop. Suspension only happens while
    awaiting a collaborator, so state is never mutated concurrently.
    Classification requests run as independent tasks and may complete in
    any order; each carries a sequence number and the epoch of the session
    that issued it. Results older than the last applied one, results from a
    reset session, and results arriving after dispatch are discarded.

Guarded operations (dispatch without analysis, takeover after dispatch,
blank responses...) are not errors: they return False and change nothing.

Usage:
    controller = create_controller(get_settings())
    await controller.start_simulation("med-1")
    ...
    await controller.dispatch()
    await controller.close()
"""

from __future__ import annotations

import asyncio
import logging
import random
import uuid
from typing import Callable, Coroutine, List, Optional, Set, Union

from dispatch_console.audio.codec import decode_base64_audio, decode_pcm16
from dispatch_console.audio.playback import AudioOutput, DummyAudioOutput
from dispatch_console.config import Settings, get_settings
from dispatch_console.core import scoring
from dispatch_console.core.capture import (
    CaptureSourceArbiter,
    LineProducer,
    MicrophoneProducer,
    SimulationProducer,
    UploadProducer,
)
from dispatch_console.core.event_log import ConsoleEventLog
from dispatch_console.core.exceptions import (
    CaptureError,
    CaptureUnavailableError,
    DispatchConsoleError,
    ValidationError,
)
from dispatch_console.core.logging import LogContext
from dispatch_console.core.scenarios import get_scenario
from dispatch_console.core.transcript import TranscriptLog
from dispatch_console.core.types import (
    AnalysisResult,
    CallScenario,
    CallSession,
    CaptureSource,
    HybridScore,
    LifecycleState,
    LogEntryType,
    SessionId,
    SessionSnapshot,
    SeverityLevel,
    Speaker,
    TranscriptLine,
    UploadPayload,
)
from dispatch_console.services.classifier import EmergencyClassifier
from dispatch_console.services.recognition import SpeechRecognizer
from dispatch_console.services.speech import SpeechSynthesizer
from dispatch_console.services.transcription import TranscriptionService

logger = logging.getLogger(__name__)

Listener = Callable[[str], None]
"""Change listener; receives "state", "transcript", "analysis" or "log"."""

_START_FAILURE_MESSAGES = {
    CaptureSource.SIMULATION: "SIMULATION START FAILED",
    CaptureSource.MICROPHONE: "MIC ACCESS DENIED",
    CaptureSource.UPLOAD: "UPLOAD TRANSCRIPTION FAILED",
}


class CallSessionController:
    """
    Orchestrates one console's call session.

    Collaborators are injected; see create_controller() for the
    settings-driven wiring.
    """

    def __init__(
        self,
        classifier: EmergencyClassifier,
        transcription: TranscriptionService,
        synthesizer: SpeechSynthesizer,
        output: Optional[AudioOutput] = None,
        recognizer: Optional[SpeechRecognizer] = None,
        settings: Optional[Settings] = None,
        console_id: Optional[str] = None,
        rng: Optional[random.Random] = None,
    ):
        self.settings = settings or get_settings()
        self.console_id = console_id or f"con_{uuid.uuid4().hex[:12]}"

        self._classifier = classifier
        self._transcription = transcription
        self._synthesizer = synthesizer
        self._output = output or DummyAudioOutput()
        self._recognizer = recognizer
        self._rng = rng or random.Random()

        self._arbiter = CaptureSourceArbiter()
        self._events = ConsoleEventLog(
            max_entries=self.settings.console_log_max_entries,
            anonymize=self.settings.anonymize_logs,
        )
        self._listeners: List[Listener] = []

        self._epoch = 0
        self._analysis_seq = 0
        self._applied_seq = 0
        self._analysis_tasks: Set[asyncio.Task] = set()
        self._background_tasks: Set[asyncio.Task] = set()
        self._archive_task: Optional[asyncio.Task] = None
        self._voice_sample_pending = False
        self._closed = False

        self._new_session()

    # =========================================================================
    # Read-only State
    # =========================================================================

    @property
    def session_id(self) -> str:
        return self._session.session_id

    @property
    def state(self) -> LifecycleState:
        return self._session.lifecycle_state

    @property
    def active_source(self) -> CaptureSource:
        return self._session.active_source

    @property
    def transcript(self) -> TranscriptLog:
        return self._transcript

    @property
    def latest_analysis(self) -> Optional[AnalysisResult]:
        return self._session.latest_analysis

    @property
    def latest_score(self) -> Optional[HybridScore]:
        return self._session.latest_score

    @property
    def events(self) -> ConsoleEventLog:
        return self._events

    @property
    def is_analyzing(self) -> bool:
        return self._session.analyses_in_flight > 0

    @property
    def live_capture_available(self) -> bool:
        return self._recognizer is not None and self._recognizer.is_available()

    def snapshot(self) -> SessionSnapshot:
        """Immutable view of the current session for renderers."""
        session = self._session
        return SessionSnapshot(
            console_id=self.console_id,
            session_id=session.session_id,
            lifecycle_state=session.lifecycle_state,
            active_source=session.active_source,
            scenario=session.scenario,
            transcript=tuple(self._transcript),
            latest_analysis=session.latest_analysis,
            latest_score=session.latest_score,
            override_route=session.override_route,
            is_analyzing=session.analyses_in_flight > 0,
            call_ended=session.call_ended,
            logs=tuple(self._events.entries()),
        )

    # =========================================================================
    # Listeners
    # =========================================================================

    def add_listener(self, listener: Listener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def _notify(self, event: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.warning("Listener failed on %s event: %s", event, e)

    def _log(
        self,
        message: str,
        entry_type: LogEntryType = LogEntryType.INFO,
        redacted: Optional[str] = None,
    ) -> None:
        with LogContext(console_id=self.console_id, session_id=self._session.session_id):
            self._events.add(message, entry_type, redacted=redacted)
        self._notify("log")

    # =========================================================================
    # Session Lifecycle
    # =========================================================================

    def _new_session(self) -> None:
        self._session = CallSession(session_id=SessionId(f"ses_{uuid.uuid4().hex[:12]}"))
        self._transcript = TranscriptLog(observer=self._on_transcript_append)
        self._applied_seq = self._analysis_seq

    async def _reset_session(self) -> None:
        """Full teardown: capture, timers, transcript, analysis and overrides."""
        self._epoch += 1
        await self._arbiter.release()

        if self._archive_task is not None:
            self._archive_task.cancel()
            self._archive_task = None

        self._new_session()
        self._log("SYSTEM RESET COMPLETE")
        self._notify("state")

    def _sync_source(self) -> None:
        self._session.active_source = self._arbiter.active_source

    async def start(
        self,
        source: CaptureSource,
        payload: Union[str, CallScenario, UploadPayload, None] = None,
    ) -> bool:
        """
        Start a new call fed by ``source``. Any prior session is reset first.

        Args:
            source: Capture source to activate
            payload: Scenario ID or CallScenario for simulations,
                UploadPayload for uploads, unused for the microphone

        Returns:
            True if the source is now feeding the transcript. A failed
            start leaves the console IDLE with a single warning entry.

        Raises:
            ValidationError: If the payload does not fit the source
            UnknownScenarioError: If a simulation scenario ID is unknown
        """
        producer = self._build_producer(source, payload)

        await self._reset_session()
        epoch = self._epoch
        self._session.lifecycle_state = LifecycleState.ACTIVE
        self._session.active_source = source
        self._session.scenario = producer.scenario
        self._notify("state")

        try:
            await self._arbiter.activate(producer)
        except Exception as e:
            if epoch != self._epoch:
                logger.debug("Start of %s superseded by a newer session", source.value)
                return False
            if not isinstance(e, DispatchConsoleError):
                e = CaptureError(f"{type(e).__name__}: {e}")
            self._fail_start(source, e)
            return False

        if (
            self._session.lifecycle_state is not LifecycleState.ACTIVE
            and source is not CaptureSource.MICROPHONE
        ):
            # operator took over while the source was still starting
            await self._arbiter.release()
        self._sync_source()
        self._session.scenario = producer.scenario

        if source is CaptureSource.MICROPHONE:
            self._log("HARDWARE MIC ACTIVE - LISTENING...", LogEntryType.ALERT)
        else:
            self._log(f"CALL INITIALIZED: {producer.scenario.name}", LogEntryType.ALERT)
        self._notify("state")
        return True

    async def start_simulation(self, scenario_id: str) -> bool:
        return await self.start(CaptureSource.SIMULATION, scenario_id)

    async def start_microphone(self) -> bool:
        return await self.start(CaptureSource.MICROPHONE)

    async def start_upload(self, audio: bytes, mime_type: str, filename: str = "upload") -> bool:
        return await self.start(
            CaptureSource.UPLOAD,
            UploadPayload(audio=audio, mime_type=mime_type, filename=filename),
        )

    def _build_producer(self, source: CaptureSource, payload) -> LineProducer:
        timing = dict(
            initial_delay=self.settings.simulation_initial_delay_seconds,
            min_delay=self.settings.simulation_min_line_delay_seconds,
            max_delay=self.settings.simulation_max_line_delay_seconds,
            rng=self._rng,
        )

        if source is CaptureSource.SIMULATION:
            scenario = payload if isinstance(payload, CallScenario) else get_scenario(str(payload))
            return SimulationProducer(scenario, self._on_caller_line, self._on_producer_finished, **timing)

        if source is CaptureSource.UPLOAD:
            if not isinstance(payload, UploadPayload):
                raise ValidationError("Upload requires an audio payload")
            return UploadProducer(
                payload,
                self._transcription,
                self._on_caller_line,
                self._on_producer_finished,
                **timing,
            )

        if source is CaptureSource.MICROPHONE:
            return MicrophoneProducer(self._recognizer, self._on_caller_line, self._on_producer_finished)

        raise ValidationError(f"Cannot start capture source: {source.value}")

    def _fail_start(self, source: CaptureSource, error: DispatchConsoleError) -> None:
        with LogContext(console_id=self.console_id, session_id=self._session.session_id):
            logger.warning("Capture start failed (%s): %s", source.value, error.message)

        self._session.lifecycle_state = LifecycleState.IDLE
        self._session.active_source = CaptureSource.NONE
        self._session.scenario = None

        if isinstance(error, CaptureUnavailableError) and source is CaptureSource.MICROPHONE:
            message = "SPEECH RECOGNITION NOT SUPPORTED"
        else:
            message = _START_FAILURE_MESSAGES.get(source, "CAPTURE START FAILED")
        self._log(message, LogEntryType.WARNING)
        self._notify("state")

    async def stop_capture(self) -> bool:
        """Stop the active producer without ending the session."""
        if self._arbiter.active is None:
            return False
        source = self._arbiter.active_source
        await self._arbiter.release()
        self._sync_source()
        logger.info("Capture stopped by operator: %s", source.value)
        self._notify("state")
        return True

    async def reset(self) -> bool:
        """Return to IDLE from any state."""
        await self._reset_session()
        return True

    # =========================================================================
    # Producer Callbacks
    # =========================================================================

    def _on_transcript_append(self, line: TranscriptLine) -> None:
        self._notify("transcript")

    def _on_caller_line(self, producer: LineProducer, text: str, final_line: bool) -> None:
        if self._arbiter.active is not producer:
            return
        if self._session.lifecycle_state not in (LifecycleState.ACTIVE, LifecycleState.TAKEOVER):
            return

        self._transcript.append(Speaker.CALLER, text)

        live = producer.source is CaptureSource.MICROPHONE
        interval = max(1, self.settings.analysis_checkpoint_interval)
        if live or final_line or len(self._transcript) % interval == 0:
            self._request_analysis()

    def _on_producer_finished(self, producer: LineProducer, error: Optional[Exception]) -> None:
        if not self._arbiter.detach(producer):
            return
        self._sync_source()

        if error is None:
            self._session.call_ended = True
            self._log("CALL DISCONNECTED")
        else:
            self._log(f"MIC ERROR: {error}", LogEntryType.WARNING)
        self._notify("state")

    # =========================================================================
    # Analysis
    # =========================================================================

    def _request_analysis(self) -> None:
        if self._session.lifecycle_state is LifecycleState.DISPATCHED:
            return

        self._analysis_seq += 1
        count = len(self._transcript)
        text = " ".join(line.render() for line in self._transcript.lines_as_of(count))

        self._session.analyses_in_flight += 1
        self._spawn(
            self._run_analysis(self._analysis_seq, self._epoch, self._session.session_id, text, count),
            self._analysis_tasks,
        )
        self._notify("state")

    async def _run_analysis(self, seq: int, epoch: int, session_id: str, text: str, count: int) -> None:
        with LogContext(console_id=self.console_id, session_id=session_id):
            try:
                result = await self._classifier.classify(text)
            except Exception as e:
                logger.warning(
                    "Classification failed, substituting fail-safe analysis: %s: %s",
                    type(e).__name__,
                    e,
                )
                result = AnalysisResult.fallback()
            finally:
                if epoch == self._epoch:
                    self._session.analyses_in_flight = max(0, self._session.analyses_in_flight - 1)

            self._apply_analysis(seq, epoch, result, count)
            self._notify("state")

    def _apply_analysis(self, seq: int, epoch: int, result: AnalysisResult, count: int) -> bool:
        if epoch != self._epoch:
            logger.debug("Discarding analysis #%d from a reset session", seq)
            return False
        if self._session.lifecycle_state in (LifecycleState.IDLE, LifecycleState.DISPATCHED):
            logger.debug("Discarding analysis #%d in state %s", seq, self._session.lifecycle_state.value)
            return False
        if seq < self._applied_seq:
            logger.debug("Discarding stale analysis #%d (applied #%d)", seq, self._applied_seq)
            return False

        self._applied_seq = seq
        if self._session.override_route:
            result = result.with_route(self._session.override_route)

        lines = self._transcript.texts(count)
        hybrid = scoring.score(result, lines) if lines else None

        self._session.latest_analysis = result
        self._session.latest_score = hybrid

        if hybrid is not None and hybrid.final_priority is SeverityLevel.P1:
            logger.warning(
                "P1 triage: type=%s, distress=%.2f, keywords=%d, confidence=%.2f",
                result.emergency_type.value,
                hybrid.distress_score,
                len(hybrid.keyword_matches),
                result.confidence,
            )
        else:
            logger.info(
                "Triage updated: type=%s, priority=%s",
                result.emergency_type.value,
                hybrid.final_priority.value if hybrid else result.severity.value,
            )

        self._notify("analysis")
        self._log(f"TRIAGE UPDATED: {result.emergency_type.value}", LogEntryType.SUCCESS)
        return True

    # =========================================================================
    # Operator Actions
    # =========================================================================

    async def takeover(self) -> bool:
        """
        Hand the call to the operator.

        Scripted and uploaded playback stops. A live microphone keeps
        running, so the caller can still be heard and analyzed.
        """
        if self._session.lifecycle_state is not LifecycleState.ACTIVE:
            return False

        if self._arbiter.active_source in (CaptureSource.SIMULATION, CaptureSource.UPLOAD):
            await self._arbiter.release()

        self._session.lifecycle_state = LifecycleState.TAKEOVER
        self._sync_source()
        self._log("MANUAL INTERVENTION: DISPATCHER TOOK OVER CALL", LogEntryType.WARNING)
        self._notify("state")
        return True

    async def respond(self, text: str) -> bool:
        """
        Speak to the caller as the dispatcher.

        Appends a dispatcher line immediately; synthesis and playback run in
        the background and never fail the call.
        """
        text = (text or "").strip()
        if not text:
            return False
        if self._session.lifecycle_state not in (LifecycleState.ACTIVE, LifecycleState.TAKEOVER):
            return False

        self._transcript.append(Speaker.DISPATCHER, text)
        self._log(
            f'VOICE RESPONSE SENT: "{text[:30]}..."',
            LogEntryType.SUCCESS,
            redacted=f"VOICE RESPONSE SENT: [REDACTED, {len(text)} chars]",
        )
        self._spawn(self._speak(text), self._background_tasks)
        return True

    async def _speak(self, text: str) -> None:
        try:
            audio = await self._synthesizer.synthesize(text)
        except Exception as e:
            logger.warning("Speech synthesis failed: %s: %s", type(e).__name__, e)
            self._log("VOICE GENERATION FAILED", LogEntryType.WARNING)
            return

        if not audio:
            logger.info("No synthesized audio for response, skipping playback")
            return
        await self._play_audio(audio)

    async def _play_audio(self, audio_b64: str) -> bool:
        try:
            raw = decode_base64_audio(audio_b64)
            buffer = decode_pcm16(
                raw,
                sample_rate=self.settings.playback_sample_rate,
                channel_count=self.settings.playback_channels,
            )
            await self._output.play(buffer)
        except Exception as e:
            logger.warning("Audio playback failed: %s: %s", type(e).__name__, e)
            self._log("AUDIO ENGINE ERROR", LogEntryType.WARNING)
            return False
        return True

    def override(self, service: str) -> bool:
        """Route the current analysis to ``service``; sticks until reset."""
        service = (service or "").strip()
        if not service or self._session.latest_analysis is None:
            return False
        if self._session.lifecycle_state is LifecycleState.DISPATCHED:
            return False

        route = f"{service} (OVERRIDE)"
        self._session.override_route = route
        self._session.latest_analysis = self._session.latest_analysis.with_route(route)
        self._log(f"OPERATOR OVERRIDE: {service}", LogEntryType.WARNING)
        self._notify("analysis")
        return True

    async def dispatch(self) -> bool:
        """Commit resources to the call. Requires an analysis."""
        if self._session.lifecycle_state not in (LifecycleState.ACTIVE, LifecycleState.TAKEOVER):
            return False
        if self._session.latest_analysis is None:
            return False

        await self._arbiter.release()
        self._session.lifecycle_state = LifecycleState.DISPATCHED
        self._sync_source()

        self._log(
            f"DISPATCH CONFIRMED: {self._session.latest_analysis.recommended_route}",
            LogEntryType.SUCCESS,
        )
        self._archive_task = asyncio.create_task(self._archive_after_delay(self._epoch))
        self._notify("state")
        return True

    async def _archive_after_delay(self, epoch: int) -> None:
        await asyncio.sleep(self.settings.archive_notice_delay_seconds)
        if epoch == self._epoch:
            self._log("INCIDENT ARCHIVED")

    async def play_voice_sample(self, scenario_id: str) -> bool:
        """
        Demo a scenario with a synthesized caller voice.

        Resets the console, synthesizes the scenario's second line (the
        first if it has only one), and on success appends it as a caller
        line, requests an analysis and plays it. One sample at a time.
        """
        scenario = get_scenario(scenario_id)
        if self._voice_sample_pending:
            return False

        self._voice_sample_pending = True
        try:
            await self._reset_session()
            epoch = self._epoch
            self._session.scenario = scenario
            line = scenario.script[1] if len(scenario.script) > 1 else scenario.script[0]
            self._log(f"GENERATING VOICE SAMPLE: {scenario.expected_type.value}...")

            try:
                audio = await self._synthesizer.synthesize(line)
            except Exception as e:
                logger.warning("Voice sample synthesis failed: %s: %s", type(e).__name__, e)
                self._log("VOICE ENGINE ERROR", LogEntryType.WARNING)
                return False

            if epoch != self._epoch:
                return False
            if not audio:
                self._log("VOICE GENERATION FAILED", LogEntryType.WARNING)
                return False

            self._log("VOICE SAMPLE READY - PLAYING", LogEntryType.SUCCESS)
            self._session.lifecycle_state = LifecycleState.ACTIVE
            self._notify("state")
            self._transcript.append(Speaker.CALLER, line)
            self._request_analysis()
            await self._play_audio(audio)
            return True
        finally:
            self._voice_sample_pending = False

    # =========================================================================
    # Task Management
    # =========================================================================

    def _spawn(self, coro: Coroutine, bucket: Set[asyncio.Task]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        bucket.add(task)
        task.add_done_callback(bucket.discard)
        return task

    async def drain(self) -> None:
        """Wait until no analysis or voice task is in flight."""
        while self._analysis_tasks or self._background_tasks:
            await asyncio.gather(
                *self._analysis_tasks,
                *self._background_tasks,
                return_exceptions=True,
            )

    async def close(self) -> None:
        """Tear down capture, pending tasks and the output device."""
        if self._closed:
            return
        self._closed = True
        self._epoch += 1

        await self._arbiter.release()
        self._sync_source()

        pending = list(self._analysis_tasks) + list(self._background_tasks)
        if self._archive_task is not None:
            pending.append(self._archive_task)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

        await self._output.close()
        self._listeners.clear()
        logger.info("Console closed: %s", self.console_id[:8])


# =============================================================================
# Factory
# =============================================================================

def _fallback(kind: str, backend: str, error: Exception, dummy):
    logger.error(
        "Failed to initialize %s backend '%s': %s. Falling back to %s.",
        kind,
        backend,
        error,
        type(dummy).__name__,
    )
    return dummy


def create_controller(
    settings: Optional[Settings] = None,
    console_id: Optional[str] = None,
) -> CallSessionController:
    """
    Factory function to create a configured CallSessionController.

    Selects collaborator implementations based on settings:
    - classifier_backend: "dummy" | "openai"
    - transcription_backend: "dummy" | "openai"
    - synthesis_backend: "dummy" | "openai"
    - recognizer_backend: "none" | "dummy" | "microphone"
    - audio_output_backend: "dummy" | "sounddevice"

    Unknown or failing backends fall back to the dummy implementation.
    """
    from dispatch_console.audio.playback import SoundDeviceAudioOutput
    from dispatch_console.services.classifier import DummyEmergencyClassifier
    from dispatch_console.services.recognition import DummySpeechRecognizer
    from dispatch_console.services.speech import DummySpeechSynthesizer
    from dispatch_console.services.transcription import DummyTranscriptionService

    settings = settings or get_settings()
    openai_kwargs = dict(
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
        timeout_seconds=settings.openai_timeout_seconds,
    )

    # --- Classifier ---
    backend = settings.classifier_backend.lower()
    if backend == "openai":
        try:
            from dispatch_console.services.classifier import OpenAIEmergencyClassifier

            classifier = OpenAIEmergencyClassifier(model=settings.classifier_model, **openai_kwargs)
        except Exception as e:
            classifier = _fallback("classifier", backend, e, DummyEmergencyClassifier())
    else:
        if backend != "dummy":
            logger.error("Unknown classifier backend '%s', using DummyEmergencyClassifier", backend)
        classifier = DummyEmergencyClassifier()

    # --- Transcription ---
    backend = settings.transcription_backend.lower()
    if backend == "openai":
        try:
            from dispatch_console.services.transcription import OpenAITranscriptionService

            transcription = OpenAITranscriptionService(
                model=settings.transcription_model,
                anonymize_logs=settings.anonymize_logs,
                **openai_kwargs,
            )
        except Exception as e:
            transcription = _fallback("transcription", backend, e, DummyTranscriptionService())
    else:
        if backend != "dummy":
            logger.error("Unknown transcription backend '%s', using DummyTranscriptionService", backend)
        transcription = DummyTranscriptionService()

    # --- Speech Synthesis ---
    backend = settings.synthesis_backend.lower()
    if backend == "openai":
        try:
            from dispatch_console.services.speech import OpenAISpeechSynthesizer

            synthesizer = OpenAISpeechSynthesizer(
                model=settings.tts_model,
                voice=settings.tts_voice,
                **openai_kwargs,
            )
        except Exception as e:
            synthesizer = _fallback("synthesis", backend, e, DummySpeechSynthesizer())
    else:
        if backend != "dummy":
            logger.error("Unknown synthesis backend '%s', using DummySpeechSynthesizer", backend)
        synthesizer = DummySpeechSynthesizer()

    # --- Live Capture ---
    backend = settings.recognizer_backend.lower()
    recognizer: Optional[SpeechRecognizer] = None
    if backend == "microphone":
        from dispatch_console.services.recognition import MicrophoneRecognizer, SegmentConfig

        recognizer = MicrophoneRecognizer(
            transcription,
            SegmentConfig(
                sample_rate=settings.microphone_sample_rate,
                frame_ms=settings.microphone_frame_ms,
                calibration_ms=settings.vad_calibration_ms,
                energy_floor_dbfs=settings.vad_energy_floor_dbfs,
                energy_offset_db=settings.vad_energy_offset_db,
                min_speech_ms=settings.vad_min_speech_ms,
                max_silence_ms=settings.vad_max_silence_ms,
                max_segment_seconds=settings.vad_max_segment_seconds,
            ),
        )
    elif backend == "dummy":
        recognizer = DummySpeechRecognizer()
    elif backend != "none":
        logger.error("Unknown recognizer backend '%s', live capture disabled", backend)

    # --- Audio Output ---
    backend = settings.audio_output_backend.lower()
    if backend == "sounddevice":
        output: AudioOutput = SoundDeviceAudioOutput()
    else:
        if backend != "dummy":
            logger.error("Unknown audio output backend '%s', using DummyAudioOutput", backend)
        output = DummyAudioOutput()

    logger.info(
        "Console configured: classifier=%s, transcription=%s, synthesis=%s, recognizer=%s, output=%s",
        classifier.model_id,
        transcription.model_id,
        synthesizer.model_id,
        recognizer.recognizer_id if recognizer else "none",
        output.output_id,
    )

    return CallSessionController(
        classifier=classifier,
        transcription=transcription,
        synthesizer=synthesizer,
        output=output,
        recognizer=recognizer,
        settings=settings,
        console_id=console_id,
    )
