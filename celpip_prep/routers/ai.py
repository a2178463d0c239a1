from fastapi import APIRouter, Depends, HTTPException
from loguru import logger
from openai import OpenAIError

from celpip_prep.schemas.attempt import WritingEvaluation
from celpip_prep.schemas.evaluation import EvaluateWritingRequest, SpeechRequest, SpeechResponse
from celpip_prep.utils.ai_client import SpeechSynthesizer, WritingEvaluator

router = APIRouter(prefix="/api", tags=["ai"])


def get_evaluator() -> WritingEvaluator:
    return WritingEvaluator()


def get_synthesizer() -> SpeechSynthesizer:
    return SpeechSynthesizer()


@router.post("/evaluate-writing", response_model=WritingEvaluation, response_model_by_alias=True)
async def evaluate_writing(payload: EvaluateWritingRequest, evaluator: WritingEvaluator = Depends(get_evaluator)):
    if not evaluator.available:
        raise HTTPException(status_code=503, detail="Writing evaluation is not configured")
    try:
        result = await evaluator.evaluate(payload.question_text, payload.user_response)
    except OpenAIError as e:
        logger.error("Writing evaluation provider error: {}", e)
        raise HTTPException(status_code=502, detail="Evaluation failed")
    if result is None:
        raise HTTPException(status_code=502, detail="Evaluation returned no usable result")
    return result


@router.post("/generate-speech", response_model=SpeechResponse, response_model_by_alias=True)
async def generate_speech(payload: SpeechRequest, synthesizer: SpeechSynthesizer = Depends(get_synthesizer)):
    if not synthesizer.available:
        raise HTTPException(status_code=503, detail="Speech generation is not configured")
    try:
        audio = await synthesizer.synthesize(payload.text)
    except (OpenAIError, ValueError) as e:
        logger.error("Speech generation failed: {}", e)
        raise HTTPException(status_code=502, detail="Speech generation failed")
    return SpeechResponse(audio_data=audio)
