"""
EXAMINER Gateway Service
========================
Stateless HTTP boundary over the core gateways (FastAPI + Asyncio).

Endpoints:
- POST /transcribe  multipart `audio` -> {"transcript"}
- POST /ask         {prompt, history, mode} -> {"question"}
- POST /speak       {text} -> audio/mpeg
- POST /summarize   {messages} -> {"summary"}
- POST /pipeline    {transcript} -> {"feedback": [RubricResult]}

Failures answer {"error": str} with the gateway's status code (500 when unknown).
"""

import logging
import uvicorn
from typing import Optional
from fastapi import FastAPI, UploadFile, File, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from fastapi.middleware.cors import CORSMiddleware

# Import Core Logic
from examiner_core.config import ASK_MAX_TOKENS
from examiner_core.context import Summarizer, assemble_messages
from examiner_core.errors import ExaminerError, EmptyResultError, InputValidationError
from examiner_core.feedback import FeedbackPipeline
from examiner_core.llm_gateway import llm_gateway
from examiner_core.speech import transcription_gateway, speech_gateway
from examiner_core.structs import AskRequest, SpeakRequest, SummarizeRequest, PipelineRequest

logger = logging.getLogger(__name__)

app = FastAPI(title="EXAMINER Gateway Service", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

summarizer = Summarizer(llm_gateway)
feedback_pipeline = FeedbackPipeline(llm_gateway)

# ── ERROR MAPPING ──

def _error_response(label: str, exc: Exception) -> JSONResponse:
    if isinstance(exc, ExaminerError):
        return JSONResponse({"error": f"{label} failed: {exc.message}"}, status_code=exc.status_code)
    logger.exception(f"{label} unexpected error")
    return JSONResponse({"error": f"An unknown error occurred in {label}"}, status_code=500)

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies are a client error (400), never a gateway call."""
    details = "; ".join(
        f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}" for err in exc.errors()
    )
    return JSONResponse({"error": f"Invalid request: {details}"}, status_code=400)

# ── ENDPOINTS ──

@app.get("/")
async def root():
    return {"status": "EXAMINER gateway service is active"}

@app.post("/transcribe")
async def transcribe(audio: Optional[UploadFile] = File(None)):
    if audio is None:
        return JSONResponse({"error": "No audio file provided"}, status_code=400)
    try:
        content = await audio.read()
        transcript = await transcription_gateway.transcribe(content, audio.content_type)
        return {"transcript": transcript}
    except Exception as e:
        logger.error(f"Transcription API error: {e}")
        return _error_response("Transcription", e)

@app.post("/ask")
async def ask(body: AskRequest):
    logger.info("Asking LLM with received prompt and history...")
    try:
        messages = assemble_messages(body.prompt.instruction_text, body.history, body.mode)
        question = await llm_gateway.complete(
            messages,
            model=body.prompt.model,
            temperature=body.prompt.temperature,
            max_tokens=ASK_MAX_TOKENS
        )
        if not question:
            raise EmptyResultError("Failed to generate question from LLM")
        logger.info(f"LLM returned question: {question}")
        return {"question": question}
    except Exception as e:
        logger.error(f"Ask API error: {e}")
        return _error_response("Ask API", e)

@app.post("/speak")
async def speak(body: SpeakRequest):
    try:
        if not body.text:
            raise InputValidationError("No text provided to speak")
        audio = await speech_gateway.synthesize(body.text)
        return Response(
            content=audio,
            media_type="audio/mpeg",
            headers={"Content-Disposition": 'inline; filename="speech.mp3"'}
        )
    except Exception as e:
        logger.error(f"Speak API error: {e}")
        return _error_response("Speak API", e)

@app.post("/summarize")
async def summarize(body: SummarizeRequest):
    try:
        summary = await summarizer.summarize(body.messages)
        logger.info(f"Summary generated successfully: {summary}")
        return {"summary": summary}
    except Exception as e:
        logger.error(f"Summarize API error: {e}")
        return _error_response("Summarize API", e)

@app.post("/pipeline")
async def pipeline(body: PipelineRequest):
    try:
        results = await feedback_pipeline.run(body.transcript or "")
        return {"feedback": [r.model_dump() for r in results]}
    except Exception as e:
        logger.error(f"Pipeline API error: {e}")
        return _error_response("Pipeline API", e)

if __name__ == "__main__":
    uvicorn.run("examiner_server:app", host="0.0.0.0", port=8000, reload=True)
