"""
EXAMINER Feedback Pipeline
==========================
Runs every rubric pass against the finished transcript, one at a time.
A failing or unparseable criterion yields a band-0 entry; the batch always
returns one result per catalog entry, in catalog order.
"""

import logging
from typing import List, Optional, Sequence

from .config import RUBRIC_TEMPERATURE, RUBRIC_MAX_TOKENS
from .errors import InputValidationError
from .llm_gateway import llm_gateway, AsyncLLMGateway
from .rubrics import RUBRIC_PROMPTS, TRANSCRIPT_PLACEHOLDER, parse_rubric_output
from .structs import RubricSpec, RubricResult, OutputContract

logger = logging.getLogger(__name__)

API_ERROR_FEEDBACK = "Error: Failed to evaluate criterion due to API error."


class FeedbackPipeline:

    def __init__(self, completion: Optional[AsyncLLMGateway] = None, catalog: Optional[Sequence[RubricSpec]] = None):
        self.completion = completion or llm_gateway
        self.catalog = list(RUBRIC_PROMPTS if catalog is None else catalog)

    async def run(self, transcript: str) -> List[RubricResult]:
        if not transcript:
            raise InputValidationError("No transcript provided for evaluation")

        logger.info(f"Starting feedback pipeline ({len(self.catalog)} criteria)...")
        results = []
        for rubric in self.catalog:
            logger.info(f"Evaluating criterion: {rubric.criterion}...")
            try:
                results.append(await self.evaluate(rubric, transcript))
            except Exception as e:
                logger.error(f"Error evaluating criterion {rubric.criterion}: {e}")
                results.append(RubricResult(criterion=rubric.criterion, band_score=0, feedback=API_ERROR_FEEDBACK))

        logger.info("Feedback pipeline completed.")
        return results

    async def evaluate(self, rubric: RubricSpec, transcript: str) -> RubricResult:
        filled_prompt = rubric.prompt_template.replace(TRANSCRIPT_PLACEHOLDER, transcript)
        raw_output = await self.completion.complete(
            [{"role": "system", "content": filled_prompt}],
            model=rubric.model,
            temperature=RUBRIC_TEMPERATURE,
            max_tokens=rubric.max_tokens or RUBRIC_MAX_TOKENS
        )

        if rubric.output_contract is OutputContract.FREE_TEXT:
            feedback = raw_output or rubric.empty_feedback
            if rubric.note:
                feedback = f"{feedback}\n\n{rubric.note}"
            # band 0 here means "not applicable", not a failure
            return RubricResult(criterion=rubric.criterion, band_score=0, feedback=feedback)

        parsed = parse_rubric_output(raw_output)
        if parsed is None:
            logger.warning(f"Could not parse output for criterion: {rubric.criterion}. Raw output: {raw_output!r}")
            return RubricResult(
                criterion=rubric.criterion,
                band_score=0,
                feedback=f"Error: Could not generate feedback for this criterion. Raw output: {raw_output or 'N/A'}"
            )

        band_score, feedback = parsed
        logger.info(f"Successfully evaluated: {rubric.criterion} (band {band_score})")
        return RubricResult(criterion=rubric.criterion, band_score=band_score, feedback=feedback)
