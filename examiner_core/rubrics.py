"""
EXAMINER Rubric Catalog
=======================
Scoring passes run, in order, against the candidate's full transcript.
Numeric passes must answer in the band format understood by
`parse_rubric_output`; free-text passes are used verbatim.
"""

import re
import logging
from typing import List, Optional, Tuple

from .structs import RubricSpec, OutputContract

logger = logging.getLogger(__name__)

TRANSCRIPT_PLACEHOLDER = "{{TRANSCRIPT}}"
RUBRIC_MODEL = "llama-3.3-70b-versatile"

BAND_FORMAT = """### OUTPUT FORMAT ###
Band Score: <a single whole number from 1 to 9>
Feedback: <3-5 sentences quoting the candidate's own words as evidence>"""


def _band_rubric(criterion: str, descriptors: str) -> RubricSpec:
    template = f"""You are a certified IELTS Speaking examiner. Rate the candidate's Part 1 answers for **{criterion}** only.

### BAND DESCRIPTORS ###
{descriptors}

### RULES ###
- Judge only the candidate's words; the examiner's questions are not included.
- Ignore transcription artefacts such as missing punctuation.
- Do not comment on other criteria.

{BAND_FORMAT}

Transcript:
{TRANSCRIPT_PLACEHOLDER}
"""
    return RubricSpec(criterion=criterion, prompt_template=template, model=RUBRIC_MODEL, max_tokens=400)


RUBRIC_PROMPTS: List[RubricSpec] = [
    RubricSpec(
        criterion="Examiner Introduction",
        output_contract=OutputContract.FREE_TEXT,
        model=RUBRIC_MODEL,
        max_tokens=300,
        empty_feedback="No introduction message generated.",
        prompt_template=f"""You are a friendly IELTS Speaking examiner writing the opening paragraph of a feedback report.
In 3-4 sentences, thank the candidate, name the topic they discussed and give one overall impression of their performance.
Do not give any band scores.

Transcript:
{TRANSCRIPT_PLACEHOLDER}
"""
    ),
    _band_rubric(
        "Fluency and Coherence",
        """- 9: speaks fluently with only rare repetition; develops topics fully and appropriately.
- 7: speaks at length without noticeable effort; uses a range of connectives and discourse markers flexibly.
- 5: usually maintains flow but uses repetition, self-correction or slow speech; overuses certain connectives.
- 3: speaks with long pauses; limited ability to link simple sentences."""
    ),
    _band_rubric(
        "Lexical Resource",
        """- 9: uses vocabulary with full flexibility and precision; idiomatic language is natural.
- 7: uses vocabulary flexibly to discuss a variety of topics; some less common and idiomatic items.
- 5: manages to talk about familiar topics but with limited flexibility; attempts paraphrase with mixed success.
- 3: uses simple vocabulary to convey personal information; insufficient for less familiar topics."""
    ),
    _band_rubric(
        "Grammatical Range and Accuracy",
        """- 9: uses a full range of structures naturally; consistently accurate apart from slips.
- 7: uses a range of complex structures with some flexibility; frequently error-free sentences.
- 5: produces basic sentence forms with reasonable accuracy; complex structures contain errors.
- 3: attempts basic sentence forms with limited success; numerous errors except in memorised phrases."""
    ),
    RubricSpec(
        criterion="Answer Structure Advice",
        output_contract=OutputContract.FREE_TEXT,
        model=RUBRIC_MODEL,
        max_tokens=800,
        empty_feedback="No advice generated.",
        note="Note: Band score is not applicable for Answer Structure Advice.",
        prompt_template=f"""You are an IELTS Speaking coach. For each of the candidate's answers below, suggest how it could be
restructured as: direct answer, reason, example, short conclusion. Keep the candidate's ideas; improve the shape.
Format the advice in Markdown with one short section per answer.

Transcript:
{TRANSCRIPT_PLACEHOLDER}
"""
    ),
]


# ── OUTPUT PARSING ──

_SCORE_RE = re.compile(r"band\s+score\s*:\s*\**\s*([1-9])(?!\d)(?:\s*/\s*9)?\**", re.IGNORECASE)
_FEEDBACK_RE = re.compile(r"^\s*\**\s*feedback\s*:\s*\**(.*)", re.IGNORECASE | re.DOTALL | re.MULTILINE)


def parse_rubric_output(output: Optional[str]) -> Optional[Tuple[int, str]]:
    """
    Extract (band_score, feedback) from a numeric rubric completion.

    The "Feedback:" label is optional: without it, everything after the score
    marker is the feedback. Returns None when either part is missing.
    """
    if not output:
        return None

    score_match = _SCORE_RE.search(output)
    if score_match:
        # Only a label that opens a line (or directly follows the score) counts
        after_score = output[score_match.end():]
        feedback_match = _FEEDBACK_RE.search(after_score)
        if feedback_match:
            feedback = feedback_match.group(1).strip()
        else:
            feedback = after_score.strip()

        if feedback:
            return int(score_match.group(1)), feedback

    logger.warning(f"Failed to parse rubric output: {output!r}")
    return None
