"""
Prompt construction for bedtime story generation.

The avoid list is rendered one pair per line, in the order given, so the
model sees the child's most recent settings and conflicts first.
"""

from typing import Optional, Sequence

from bedtime.jobs.models import AvoidPair, StoryLength


LENGTH_LABELS = {
    StoryLength.SHORT: "rövid",
    StoryLength.MEDIUM: "közepes",
    StoryLength.LONG: "hosszú",
}

WORD_RANGES = {
    StoryLength.SHORT: "400-520 words",
    StoryLength.MEDIUM: "650-800 words",
    StoryLength.LONG: "950-1100 words",
}

STORY_PROMPT_TEMPLATE = """
You are a senior children's story writer.
Write a UNIQUE Hungarian bedtime story.

OUTPUT LANGUAGE: Hungarian.
Style: warm, comforting, modern, short paragraphs.
Target age: {age} years.
Theme: {theme}.
Mood: {mood}.
Length: {length_label} ({word_range}).
Lesson (optional): {lesson}.

AVOID (do not reuse these setting/conflict pairs):
{avoid_list}

Rules:
- Use simple, concrete, child-friendly Hungarian.
- No scary, aggressive or threatening elements.
- No classic fairy-tale clichés or magic shortcuts.
- Do not reuse any AVOID pair, even paraphrased.
- The ending repeats something already mentioned and closes calmly.
- Use 6-10 short paragraphs.

Return only the story text.
"""


def format_avoid_list(avoid_pairs: Sequence[AvoidPair]) -> str:
    if not avoid_pairs:
        return "None"
    return "\n".join(f"- {pair.setting} / {pair.conflict}" for pair in avoid_pairs)


def build_story_prompt(
    child_age: int,
    mood: str,
    length: str,
    theme: str,
    avoid_pairs: Sequence[AvoidPair],
    lesson: Optional[str] = None,
) -> str:
    """Render the generation prompt for one story request."""
    story_length = StoryLength(length)
    return STORY_PROMPT_TEMPLATE.format(
        age=child_age,
        theme=theme,
        mood=mood,
        length_label=LENGTH_LABELS[story_length],
        word_range=WORD_RANGES[story_length],
        lesson=lesson or "none",
        avoid_list=format_avoid_list(avoid_pairs),
    ).strip()
