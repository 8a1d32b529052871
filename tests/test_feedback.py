import unittest
import asyncio
from unittest.mock import MagicMock, AsyncMock

from examiner_core.errors import CompletionError, InputValidationError
from examiner_core.feedback import FeedbackPipeline, API_ERROR_FEEDBACK
from examiner_core.rubrics import RUBRIC_PROMPTS, TRANSCRIPT_PLACEHOLDER, parse_rubric_output
from examiner_core.structs import OutputContract, RubricSpec


def _rubric(criterion, contract=OutputContract.NUMERIC_BAND, **kwargs):
    return RubricSpec(
        criterion=criterion,
        prompt_template=f"Rate {criterion}:\n{TRANSCRIPT_PLACEHOLDER}",
        output_contract=contract,
        **kwargs
    )


class TestRubricParser(unittest.TestCase):

    def test_labelled_output(self):
        self.assertEqual(
            parse_rubric_output("Band Score: 6\nFeedback: Good control of tenses."),
            (6, "Good control of tenses.")
        )

    def test_unlabelled_feedback_follows_score(self):
        self.assertEqual(
            parse_rubric_output("Band score: 4\nSome unlabeled feedback text."),
            (4, "Some unlabeled feedback text.")
        )

    def test_markdown_and_out_of_nine(self):
        self.assertEqual(
            parse_rubric_output("**Band Score: 7/9**\nFEEDBACK: Wide range of idioms."),
            (7, "Wide range of idioms.")
        )

    def test_label_must_open_a_line_after_the_score(self):
        self.assertEqual(
            parse_rubric_output("Band score: 4\nMy overall feedback: fine."),
            (4, "My overall feedback: fine.")
        )
        self.assertEqual(
            parse_rubric_output("Feedback: draft notes\nBand Score: 5\nFeedback: Clear and well linked."),
            (5, "Clear and well linked.")
        )
        self.assertEqual(parse_rubric_output("Band Score: 6 Feedback: inline"), (6, "inline"))

    def test_rejects_missing_parts(self):
        self.assertIsNone(parse_rubric_output(""))
        self.assertIsNone(parse_rubric_output(None))
        self.assertIsNone(parse_rubric_output("Band Score: 6"))
        self.assertIsNone(parse_rubric_output("Feedback: nice answers"))
        self.assertIsNone(parse_rubric_output("Band Score: 10\nFeedback: too high"))


class TestFeedbackPipeline(unittest.TestCase):

    def setUp(self):
        self.completion = MagicMock()

    def test_catalog_shape(self):
        criteria = [r.criterion for r in RUBRIC_PROMPTS]
        self.assertEqual(len(criteria), 5)
        self.assertEqual(criteria[0], "Examiner Introduction")
        self.assertEqual(criteria[-1], "Answer Structure Advice")
        for rubric in RUBRIC_PROMPTS:
            self.assertIn(TRANSCRIPT_PLACEHOLDER, rubric.prompt_template)

    def test_results_follow_catalog_order(self):
        catalog = [_rubric("A"), _rubric("B"), _rubric("C")]
        self.completion.complete = AsyncMock(side_effect=[
            "Band Score: 5\nFeedback: a",
            "Band Score: 6\nFeedback: b",
            "Band Score: 7\nFeedback: c",
        ])
        pipeline = FeedbackPipeline(self.completion, catalog)

        results = asyncio.run(pipeline.run("My hometown is Lyon."))

        self.assertEqual(
            [(r.criterion, r.band_score, r.feedback) for r in results],
            [("A", 5, "a"), ("B", 6, "b"), ("C", 7, "c")]
        )

    def test_template_substitution_and_call_shape(self):
        self.completion.complete = AsyncMock(return_value="Band Score: 6\nFeedback: ok")
        pipeline = FeedbackPipeline(self.completion, [_rubric("Lexical Resource", model="rubric-model", max_tokens=123)])

        asyncio.run(pipeline.run("I love painting."))

        args, kwargs = self.completion.complete.await_args
        self.assertEqual(args[0], [{"role": "system", "content": "Rate Lexical Resource:\nI love painting."}])
        self.assertEqual(kwargs["model"], "rubric-model")
        self.assertEqual(kwargs["max_tokens"], 123)

    def test_every_criterion_failing_still_returns_full_batch(self):
        self.completion.complete = AsyncMock(side_effect=CompletionError("Service unavailable", 503))
        pipeline = FeedbackPipeline(self.completion)

        results = asyncio.run(pipeline.run("Some answer."))

        self.assertEqual(len(results), len(RUBRIC_PROMPTS))
        for result in results:
            self.assertEqual(result.band_score, 0)
            self.assertEqual(result.feedback, API_ERROR_FEEDBACK)

    def test_one_failure_does_not_stop_the_loop(self):
        self.completion.complete = AsyncMock(side_effect=[
            "Band Score: 5\nFeedback: a",
            RuntimeError("connection reset"),
            "Band Score: 7\nFeedback: c",
        ])
        pipeline = FeedbackPipeline(self.completion, [_rubric("A"), _rubric("B"), _rubric("C")])

        results = asyncio.run(pipeline.run("text"))

        self.assertEqual([r.band_score for r in results], [5, 0, 7])
        self.assertEqual(results[1].feedback, API_ERROR_FEEDBACK)

    def test_unparseable_output_keeps_raw_text(self):
        self.completion.complete = AsyncMock(return_value="I cannot rate this.")
        pipeline = FeedbackPipeline(self.completion, [_rubric("A")])

        result = asyncio.run(pipeline.run("text"))[0]

        self.assertEqual(result.band_score, 0)
        self.assertIn("Could not generate feedback", result.feedback)
        self.assertIn("I cannot rate this.", result.feedback)

    def test_free_text_with_note(self):
        rubric = _rubric("Advice", OutputContract.FREE_TEXT, note="Note: not scored.", empty_feedback="No advice generated.")
        self.completion.complete = AsyncMock(side_effect=["Use the AREA structure.", ""])
        pipeline = FeedbackPipeline(self.completion, [rubric, rubric])

        results = asyncio.run(pipeline.run("text"))

        self.assertEqual(results[0].band_score, 0)
        self.assertEqual(results[0].feedback, "Use the AREA structure.\n\nNote: not scored.")
        self.assertEqual(results[1].feedback, "No advice generated.\n\nNote: not scored.")

    def test_empty_transcript_is_rejected(self):
        self.completion.complete = AsyncMock()
        pipeline = FeedbackPipeline(self.completion)

        with self.assertRaises(InputValidationError):
            asyncio.run(pipeline.run(""))
        self.completion.complete.assert_not_awaited()


if __name__ == '__main__':
    unittest.main()
