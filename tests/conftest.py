import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# The gateway module builds its Groq clients at import time
os.environ["GROQ_API_KEY"] = "gsk_test_key_for_unit_tests"
