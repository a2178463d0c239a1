from __future__ import annotations

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Dict, List, Optional

from loguru import logger

from celpip_prep.delivery.completion import CompletionResult, finish_test
from celpip_prep.delivery.machine import initial_state, transition
from celpip_prep.delivery.state import (
    CompleteTest,
    DeliveryState,
    Effect,
    Event,
    ExitTest,
    PlayAudio,
    StartRecording,
    StopAudio,
    StopRecording,
    Tick,
)
from celpip_prep.schemas.practice_set import PracticeSet
from celpip_prep.utils.gateway import Gateway


class MediaDeviceError(Exception):
    """Microphone or speaker refused by the device/runtime."""


class MediaController:
    """
    Audio playback and microphone capture for one candidate.

    This implementation keeps the device state and queues the commands for
    whoever owns the real devices (the browser, in the HTTP flow). Subclass
    and override the ``_do_*`` hooks to drive hardware directly.
    """

    def __init__(self) -> None:
        self.audio_source: Optional[str] = None
        self.recording = False
        self.commands: List[Dict[str, Any]] = []

    def play_audio(self, source: str, owner_id: str) -> None:
        self._do_play(source, owner_id)
        self.audio_source = source
        self.commands.append({"command": "play_audio", "owner": owner_id, "source": source})

    def stop_audio(self) -> None:
        if self.audio_source is None:
            return
        try:
            self._do_stop_audio()
        finally:
            self.audio_source = None
            self.commands.append({"command": "stop_audio"})

    def start_recording(self, segment_id: str) -> None:
        self.recording = True
        self.commands.append({"command": "start_recording", "segment": segment_id})
        self._do_start_recording(segment_id)

    def stop_recording(self) -> None:
        if not self.recording:
            return
        self.recording = False
        self.commands.append({"command": "stop_recording"})
        self._do_stop_recording()

    def drain(self) -> List[Dict[str, Any]]:
        out, self.commands = self.commands, []
        return out

    def _do_play(self, source: str, owner_id: str) -> None:
        pass

    def _do_stop_audio(self) -> None:
        pass

    def _do_start_recording(self, segment_id: str) -> None:
        pass

    def _do_stop_recording(self) -> None:
        pass


class DeliveryRunner:
    """
    Owns the one mutable delivery state for a candidate's sitting.

    Events go through ``dispatch`` one at a time; the reducer's effects are
    applied synchronously, in order, before the next event is looked at.
    Completion (grading, writing evaluation, persistence) runs at most once.
    """

    def __init__(
        self,
        practice_set: PracticeSet,
        user_id: str,
        gateway: Gateway,
        media: Optional[MediaController] = None,
        on_complete: Optional[Callable[[CompletionResult], Any]] = None,
        on_exit: Optional[Callable[[], Any]] = None,
    ):
        self.practice_set = practice_set
        self.user_id = user_id
        self.gateway = gateway
        self.media = media or MediaController()
        self.on_complete = on_complete
        self.on_exit = on_exit

        self.capture_degraded = False
        self.analyzing = False
        self.result: Optional[CompletionResult] = None
        self._state = initial_state()
        self._completed = False
        self._lock = asyncio.Lock()

    @property
    def state(self) -> DeliveryState:
        return self._state

    @property
    def finished(self) -> bool:
        return self._state.is_finished

    async def dispatch(self, event: Event) -> DeliveryState:
        async with self._lock:
            step = transition(self.practice_set, self._state, event)
            self._state = step.state
            await self._apply(step.effects)
            return self._state

    def report_media_failure(self, kind: str, detail: str = "") -> None:
        """Client-side device errors land here; the test keeps going."""
        if kind == "microphone":
            self.capture_degraded = True
            logger.warning("Microphone unavailable ({}); recording continues without capture", detail or "no detail")
        else:
            logger.warning("Audio playback failed ({}); timer continues", detail or "no detail")

    async def _apply(self, effects) -> None:
        for effect in effects:
            if isinstance(effect, CompleteTest):
                await self._complete()
            elif isinstance(effect, ExitTest):
                logger.info("Candidate {} left test {}", self.user_id, self.practice_set.id)
                await _call(self.on_exit)
            else:
                self._apply_media(effect)

    def _apply_media(self, effect: Effect) -> None:
        try:
            if isinstance(effect, PlayAudio):
                self.media.play_audio(effect.source, effect.owner_id)
            elif isinstance(effect, StopAudio):
                self.media.stop_audio()
            elif isinstance(effect, StartRecording):
                self.media.start_recording(effect.segment_id)
            elif isinstance(effect, StopRecording):
                self.media.stop_recording()
        except MediaDeviceError as e:
            if isinstance(effect, StartRecording):
                self.report_media_failure("microphone", str(e))
            else:
                self.report_media_failure("audio", str(e))

    async def _complete(self) -> None:
        if self._completed:
            return
        self._completed = True
        self.analyzing = True
        try:
            self.result = await finish_test(self.practice_set, self._state, self.user_id, self.gateway)
        finally:
            self.analyzing = False
        await _call(self.on_complete, self.result)


async def _call(callback: Optional[Callable[..., Any]], *args: Any) -> None:
    if callback is None:
        return
    out = callback(*args)
    if inspect.isawaitable(out):
        await out


class TimerDriver:
    """The single one-second tick source for a runner."""

    def __init__(
        self,
        runner: DeliveryRunner,
        interval: float = 1.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.runner = runner
        self.interval = interval
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None

    async def run(self, max_ticks: Optional[int] = None) -> int:
        ticks = 0
        while not self.runner.finished and (max_ticks is None or ticks < max_ticks):
            await self._sleep(self.interval)
            if self.runner.finished:
                break
            await self.runner.dispatch(Tick())
            ticks += 1
        return ticks

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self.run())
        return self._task

    def stop(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
