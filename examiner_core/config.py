
# ═════════════════════════════════════════════════════════════════════════
# EXAMINER: SCRIPTED SPEAKING-TEST ORCHESTRATOR
# Runtime Configuration & Constants
# ═════════════════════════════════════════════════════════════════════════

import os
import logging
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# ── LOGGING ──
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(level=LOG_LEVEL, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

# ── API CONFIGURATION ──
# Up to three keys; the gateway rotates between them.
GROQ_KEY_VARS = ["GROQ_API_KEY", "GROQ_API_KEY_2", "GROQ_API_KEY_3"]

# ── MODEL SELECTION ──
LLM_MODEL = os.getenv("EXAMINER_LLM_MODEL", "llama-3.3-70b-versatile")
ASK_MAX_TOKENS = int(os.getenv("ASK_MAX_TOKENS", "50"))    # Scripted lines are one sentence

SUMMARY_MODEL = os.getenv("SUMMARY_MODEL", "llama-3.1-8b-instant")
SUMMARY_TEMPERATURE = 0.1
SUMMARY_MAX_TOKENS = 200

RUBRIC_TEMPERATURE = 0.1   # Near-deterministic scoring
RUBRIC_MAX_TOKENS = 1500

# Speech Models
STT_MODEL = os.getenv("STT_MODEL", "whisper-large-v3")
STT_LANGUAGE = os.getenv("STT_LANGUAGE", "en")
DEFAULT_AUDIO_EXTENSION = "webm"

TTS_VOICE = os.getenv("TTS_VOICE", "en-GB-RyanNeural")    # British examiner voice
TTS_RATE = os.getenv("TTS_RATE", "+0%")

# ── CONTEXT ASSEMBLY ──
# full_history: instruction + whole transcript
# pre_composed: instruction + summary of older turns + recent turns
CONTEXT_MODE = os.getenv("EXAMINER_CONTEXT_MODE", "full_history")
CONTEXT_RECENT_MESSAGES = int(os.getenv("CONTEXT_RECENT_MESSAGES", "4"))
SUMMARY_ROLE = os.getenv("SUMMARY_ROLE", "system")

# ── GATEWAY PROTOCOL ──
# 1 = a failed call is final; raise to retry rate limits / dropped connections.
GATEWAY_MAX_ATTEMPTS = int(os.getenv("GATEWAY_MAX_ATTEMPTS", "1"))
