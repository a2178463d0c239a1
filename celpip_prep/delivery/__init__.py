from celpip_prep.delivery.machine import initial_state, locate, transition
from celpip_prep.delivery.runner import DeliveryRunner, MediaController, MediaDeviceError, TimerDriver
from celpip_prep.delivery.state import (
    MAIN_AUDIO,
    Answer,
    BeginSection,
    ContinueReview,
    DeliveryState,
    Exit,
    Next,
    Phase,
    Tick,
    ViewState,
    WriteResponse,
)

__all__ = [
    "MAIN_AUDIO",
    "Answer",
    "BeginSection",
    "ContinueReview",
    "DeliveryRunner",
    "DeliveryState",
    "Exit",
    "MediaController",
    "MediaDeviceError",
    "Next",
    "Phase",
    "Tick",
    "TimerDriver",
    "ViewState",
    "WriteResponse",
    "initial_state",
    "locate",
    "transition",
]
