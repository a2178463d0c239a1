from __future__ import annotations

import base64
import io
import json
import os
import re
import wave
from pathlib import Path
from typing import Any, List, Optional, Tuple

from dotenv import load_dotenv
from loguru import logger
from openai import AsyncOpenAI
from pydantic import ValidationError

from celpip_prep.schemas.attempt import WritingEvaluation

load_dotenv(Path(__file__).resolve().parents[1] / ".env")

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_WRITING_MODEL = os.getenv("OPENAI_WRITING_MODEL", "gpt-4o-mini")
OPENAI_TTS_MODEL = os.getenv("OPENAI_TTS_MODEL", "gpt-4o-mini-tts")

# Raw PCM from the speech endpoint: 24 kHz, 16-bit, mono
PCM_SAMPLE_RATE = 24000
PCM_SAMPLE_WIDTH = 2

# first speaker found gets the first voice, and so on
VOICES = ["onyx", "nova", "echo", "shimmer"]
MAX_SPEAKERS = 4

SPEAKER_LINE = re.compile(r"^([A-Za-z0-9 ]+):\s*(.*)$")
CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")

WRITING_RUBRIC = """You are a certified CELPIP Writing Examiner. Evaluate the candidate's writing \
according to the CELPIP Writing Performance Standards. Be fair, realistic and consistent.

Evaluation pillars (all mandatory):
1. Content / Coherence: relevance, clarity, development, paragraphing, progression of ideas.
2. Vocabulary: range, precision, natural phrasing, no excessive repetition.
3. Readability: sentence structure and variety, grammar, spelling, punctuation.
   Judge errors by frequency and impact on clarity, not perfection.
4. Task Fulfillment: all required points addressed, tone and register, word count.

Task rules:
- Task 1 = Email: clear purpose, every bullet point addressed, tone matches the recipient.
- Task 2 = Survey / Opinion: clear position, supported with reasons or examples, organized.

Assign ONE holistic CLB score from 1 to 12:
- 10-12: strong, natural, flexible control; errors rare.
- 9: clear, effective; minor errors that do not reduce clarity.
- 7-8: generally clear and functional; some limits in range or development.
- 5-6: basic but adequate; frequent errors, main message usually understandable.
- 1-4: limited; frequent errors, weak organization or incomplete task.
Do not reward formality alone, do not penalize minor errors that keep meaning intact,
and do not inflate safe but shallow answers.

Respond with JSON only:
{
  "bandScore": <integer 1-12>,
  "scores": {"content": <1-12>, "vocabulary": <1-12>, "readability": <1-12>, "taskFulfillment": <1-12>},
  "feedback": "<markdown with sections ### Content / Coherence, ### Vocabulary, ### Readability, ### Task Fulfillment>",
  "corrections": "<markdown list of 3-5 real errors: * **Error:** [original] -> **Fix:** [correction] ([reason])>"
}"""


class AIUnavailable(RuntimeError):
    """No provider key configured."""


def get_openai_client() -> Optional[AsyncOpenAI]:
    if not OPENAI_API_KEY:
        return None
    return AsyncOpenAI(api_key=OPENAI_API_KEY)


def strip_code_fences(text: str) -> str:
    return CODE_FENCE.sub("", (text or "").strip())


def parse_evaluation(raw: str) -> Optional[WritingEvaluation]:
    """Model output -> WritingEvaluation; None if it is not usable JSON."""
    try:
        data = json.loads(strip_code_fences(raw))
    except (TypeError, ValueError):
        logger.warning("Writing evaluation was not JSON: {!r}", (raw or "")[:200])
        return None
    if not isinstance(data, dict):
        return None
    try:
        data["bandScore"] = max(0, min(12, int(round(float(data.get("bandScore", 0))))))
        return WritingEvaluation.model_validate(data)
    except (TypeError, ValueError, ValidationError) as e:
        logger.warning("Writing evaluation had an unexpected shape: {}", e)
        return None


def detect_speakers(script: str) -> List[str]:
    speakers: List[str] = []
    for line in (script or "").splitlines():
        m = SPEAKER_LINE.match(line.strip())
        if m and m.group(1).strip() not in speakers:
            speakers.append(m.group(1).strip())
    return speakers


def split_turns(script: str) -> List[Tuple[Optional[str], str]]:
    """
    "Anna: Hi\\nBen: Hello\\nhow are you" -> [("Anna", "Hi"), ("Ben", "Hello how are you")]
    Lines before the first speaker tag belong to a None speaker.
    """
    turns: List[Tuple[Optional[str], List[str]]] = []
    for line in (script or "").splitlines():
        line = line.strip()
        if not line:
            continue
        m = SPEAKER_LINE.match(line)
        if m:
            turns.append((m.group(1).strip(), [m.group(2)] if m.group(2) else []))
        elif turns:
            turns[-1][1].append(line)
        else:
            turns.append((None, [line]))
    return [(speaker, " ".join(words)) for speaker, words in turns if words]


def voice_plan(script: str) -> List[Tuple[str, str]]:
    """(voice, text) per request. Two or more speakers -> one request per turn."""
    speakers = detect_speakers(script)
    if len(speakers) < 2:
        return [(VOICES[0], script.strip())]
    voices = {name: VOICES[i % len(VOICES)] for i, name in enumerate(speakers[:MAX_SPEAKERS])}
    return [(voices.get(speaker, VOICES[0]), text) for speaker, text in split_turns(script)]


def pcm_to_wav(pcm: bytes, sample_rate: int = PCM_SAMPLE_RATE, channels: int = 1) -> bytes:
    buf = io.BytesIO()
    with wave.open(buf, "wb") as w:
        w.setnchannels(channels)
        w.setsampwidth(PCM_SAMPLE_WIDTH)
        w.setframerate(sample_rate)
        w.writeframes(pcm)
    return buf.getvalue()


def wav_data_url(wav: bytes) -> str:
    return "data:audio/wav;base64," + base64.b64encode(wav).decode("ascii")


class WritingEvaluator:
    def __init__(self, client: Optional[Any] = None, model: str = OPENAI_WRITING_MODEL):
        self.client = client if client is not None else get_openai_client()
        self.model = model

    @property
    def available(self) -> bool:
        return self.client is not None

    async def evaluate(self, prompt: str, response: str) -> Optional[WritingEvaluation]:
        if not self.available:
            raise AIUnavailable("OPENAI_API_KEY is not set")
        completion = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": WRITING_RUBRIC},
                {"role": "user", "content": f"Task Instructions: {prompt}\n\nCandidate Response: {response}"},
            ],
            response_format={"type": "json_object"},
        )
        return parse_evaluation(completion.choices[0].message.content)


class SpeechSynthesizer:
    def __init__(self, client: Optional[Any] = None, model: str = OPENAI_TTS_MODEL):
        self.client = client if client is not None else get_openai_client()
        self.model = model

    @property
    def available(self) -> bool:
        return self.client is not None

    async def synthesize(self, script: str) -> str:
        """Script -> WAV data URL. Raises on provider errors."""
        if not self.available:
            raise AIUnavailable("OPENAI_API_KEY is not set")
        pcm = bytearray()
        for voice, text in voice_plan(script):
            resp = await self.client.audio.speech.create(
                model=self.model,
                voice=voice,
                input=text,
                response_format="pcm",
            )
            pcm.extend(resp.content)
        if not pcm:
            raise ValueError("No audio generated")
        return wav_data_url(pcm_to_wav(bytes(pcm)))
