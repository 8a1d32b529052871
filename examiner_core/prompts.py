"""
EXAMINER Scripted Prompt Catalog
================================
Static topic -> ordered examiner turns. Turn N is used after the candidate's
N-th recording; the final entry is the closing line, after which the
transcript goes to the feedback pipeline.
"""

from typing import Dict, List, Tuple

from .structs import PromptSpec

SCRIPT_MODEL = "llama-3.1-8b-instant"

CLOSING_LINE = "Thank you for participating in the test. Your feedback will be ready in a moment. Have a great day!"


def _examiner_turn(verb: str, line: str, rules: List[str], preamble: str = "You are the examiner.") -> PromptSpec:
    rule_text = "\n".join(f"– {r}" for r in rules)
    text = f"""# System
{preamble}

## Task
{verb}: **"{line}"**

## Rules
{rule_text}"""
    return PromptSpec(instruction_text=text, temperature=0, model=SCRIPT_MODEL)


def _ask(line: str) -> PromptSpec:
    return _examiner_turn("Ask", line, ["Exact wording.", "Do not add anything else."])


def _last_question(line: str) -> PromptSpec:
    return _examiner_turn(
        "Ask", line, ["Exact wording.", "Do not add anything else."],
        preamble="You are the examiner. This is your last question."
    )


def _closing() -> PromptSpec:
    return _examiner_turn(
        "Say exactly and only",
        CLOSING_LINE,
        [
            "Output must match the sentence above exactly, with no changes, additions, or omissions.",
            "Do NOT add any extra words, sentences, or explanations.",
            "Do NOT ask any follow-up questions.",
            "Do NOT include any greetings, sign-offs, or comments.",
            "Never say anything like: 'Thank you for sharing your thoughts. Now, let's move on to the next topic.'",
            "Output ONLY the sentence in bold above. Nothing else.",
        ],
        preamble=(
            "You are the examiner. The test is now complete. You are an expert in outputting "
            "ONLY what you have been instructed and you never output anything else!"
        )
    )


def _topic_script(transition: str, questions: Tuple[str, str, str, str]) -> List[PromptSpec]:
    first, second, third, last = questions
    return [
        _examiner_turn("Ask", "Are you ready to begin Speaking Part 1?",
                       ["Output must match exactly.", "Do not add anything else."]),
        _examiner_turn("Say", transition, ["Output must match exactly.", "No extra content."]),
        _ask(first),
        _ask(second),
        _ask(third),
        _last_question(last),
        _closing(),
    ]


# ── TOPIC SETS ──

TOPIC_PROMPT_SETS: Dict[str, List[PromptSpec]] = {
    "Hometown": _topic_script(
        "Great. Let's talk about your hometown. Ready?",
        (
            "Where is your hometown?",
            "What do you like most about living there?",
            "How has your hometown changed in recent years?",
            "Would you recommend your hometown to visitors? Why or why not?",
        )
    ),
    "Computers": _topic_script(
        "Okay. Let's talk about computers. Ready?",
        (
            "How often do you use a computer?",
            "What do you mainly use a computer for?",
            "Do you think computers have changed society significantly?",
            "Are there any disadvantages to relying heavily on computers?",
        )
    ),
    "Free Time": _topic_script(
        "Right. Now I'd like to ask you about how you spend your free time. Ready?",
        (
            "What do you usually do in your free time?",
            "Do you prefer spending your free time alone or with others?",
            "Has the way you spend your free time changed over the years?",
            "How important is it to have hobbies or leisure activities?",
        )
    ),
}


def get_available_topics() -> List[str]:
    return list(TOPIC_PROMPT_SETS)
