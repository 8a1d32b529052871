import unittest
from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from examiner_core.errors import CompletionError, TranscriptionError
from examiner_core.llm_gateway import llm_gateway
from examiner_core.rubrics import RUBRIC_PROMPTS
from examiner_core.speech import speech_gateway, transcription_gateway
from examiner_server import app

ASK_BODY = {
    "prompt": {"prompt_text": "Ask the candidate where they live.", "temperature": 0, "model": "llama-3.1-8b-instant"},
    "history": [
        {"role": "user", "content": "yes"},
        {"role": "examiner", "content": "Can you tell me your full name?"},
        {"role": "user", "content": "Anna Martin."},
    ],
}


class TestGatewayService(unittest.TestCase):

    def setUp(self):
        self.client = TestClient(app)

    def test_root(self):
        self.assertEqual(self.client.get("/").status_code, 200)

    # ── /ask ──

    def test_ask_returns_question(self):
        with patch.object(llm_gateway, "complete", AsyncMock(return_value="Where do you live?")) as complete:
            response = self.client.post("/ask", json=ASK_BODY)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"question": "Where do you live?"})
        messages = complete.await_args.args[0]
        self.assertEqual(messages[0], {"role": "system", "content": "Ask the candidate where they live."})
        self.assertEqual(messages[2]["role"], "assistant")
        self.assertEqual(complete.await_args.kwargs["model"], "llama-3.1-8b-instant")

    def test_ask_without_prompt_is_rejected(self):
        with patch.object(llm_gateway, "complete", AsyncMock()) as complete:
            response = self.client.post("/ask", json={"history": []})

        self.assertEqual(response.status_code, 400)
        self.assertIn("error", response.json())
        complete.assert_not_awaited()

    def test_ask_with_unknown_role_is_rejected(self):
        body = dict(ASK_BODY, history=[{"role": "robot", "content": "beep"}])
        response = self.client.post("/ask", json=body)
        self.assertEqual(response.status_code, 400)

    def test_ask_propagates_upstream_status(self):
        with patch.object(llm_gateway, "complete", AsyncMock(side_effect=CompletionError("Rate limit reached", 429))):
            response = self.client.post("/ask", json=ASK_BODY)

        self.assertEqual(response.status_code, 429)
        self.assertEqual(response.json(), {"error": "Ask API failed: Rate limit reached"})

    def test_ask_empty_completion_is_an_error(self):
        with patch.object(llm_gateway, "complete", AsyncMock(return_value="")):
            response = self.client.post("/ask", json=ASK_BODY)

        self.assertEqual(response.status_code, 500)
        self.assertIn("Failed to generate question", response.json()["error"])

    def test_ask_unexpected_failure_is_500(self):
        with patch.object(llm_gateway, "complete", AsyncMock(side_effect=RuntimeError("boom"))):
            response = self.client.post("/ask", json=ASK_BODY)

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"error": "An unknown error occurred in Ask API"})

    # ── /pipeline ──

    def test_pipeline_requires_transcript(self):
        response = self.client.post("/pipeline", json={})
        self.assertEqual(response.status_code, 400)
        self.assertIn("No transcript provided", response.json()["error"])

    def test_pipeline_returns_one_entry_per_criterion(self):
        with patch.object(llm_gateway, "complete", AsyncMock(return_value="Band Score: 6\nFeedback: Good control of tenses.")):
            response = self.client.post("/pipeline", json={"transcript": "I live in Lyon.\n\nI study law."})

        self.assertEqual(response.status_code, 200)
        feedback = response.json()["feedback"]
        self.assertEqual(len(feedback), len(RUBRIC_PROMPTS))
        self.assertEqual([f["criterion"] for f in feedback], [r.criterion for r in RUBRIC_PROMPTS])
        self.assertEqual(feedback[1]["band_score"], 6)
        self.assertEqual(feedback[1]["feedback"], "Good control of tenses.")

    # ── /speak ──

    def test_speak_requires_text(self):
        response = self.client.post("/speak", json={"text": ""})
        self.assertEqual(response.status_code, 400)

    def test_speak_returns_mp3(self):
        with patch.object(speech_gateway, "synthesize", AsyncMock(return_value=b"ID3-mp3")):
            response = self.client.post("/speak", json={"text": "Where do you live?"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.headers["content-type"], "audio/mpeg")
        self.assertIn("speech.mp3", response.headers["content-disposition"])
        self.assertEqual(response.content, b"ID3-mp3")

    # ── /summarize ──

    def test_summarize_requires_messages(self):
        response = self.client.post("/summarize", json={"messages": []})
        self.assertEqual(response.status_code, 400)

    def test_summarize_returns_summary(self):
        with patch.object(llm_gateway, "complete", AsyncMock(return_value="The user lives in Lyon.")):
            response = self.client.post("/summarize", json={"messages": [{"role": "user", "content": "I live in Lyon."}]})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"summary": "The user lives in Lyon."})

    # ── /transcribe ──

    def test_transcribe_requires_audio(self):
        response = self.client.post("/transcribe")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"error": "No audio file provided"})

    def test_transcribe_returns_text(self):
        with patch.object(transcription_gateway, "transcribe", AsyncMock(return_value="My name is Anna.")) as transcribe:
            response = self.client.post("/transcribe", files={"audio": ("recording.webm", b"webm-bytes", "audio/webm")})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"transcript": "My name is Anna."})
        transcribe.assert_awaited_once_with(b"webm-bytes", "audio/webm")

    def test_transcribe_propagates_upstream_status(self):
        failure = AsyncMock(side_effect=TranscriptionError("Service unavailable", 503))
        with patch.object(transcription_gateway, "transcribe", failure):
            response = self.client.post("/transcribe", files={"audio": ("recording.webm", b"webm-bytes", "audio/webm")})

        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.json(), {"error": "Transcription failed: Service unavailable"})


if __name__ == '__main__':
    unittest.main()
