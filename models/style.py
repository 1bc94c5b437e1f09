"""Writing style model and the system-default styles.

A style is named instruction text that controls the voice of the
synthesized dossier. The system defaults below are seeded into the
database on first open; users may add their own.
"""

from pydantic import BaseModel, Field

# Used whenever a style name cannot be resolved
DEFAULT_STYLE_NAME = "professional"
DEFAULT_STYLE_PROMPT = (
    "Write in a professional, formal tone suitable for business communication. "
    "Be clear, concise, and authoritative."
)

# Style that switches synthesis to the permissive generation profile
PERMISSIVE_STYLE_NAME = "sweary"


class Style(BaseModel):
    """Named generation instructions.

    Attributes:
        name: Unique style name (e.g. 'professional')
        prompt: Instruction text inserted into the synthesis prompt
        is_system_default: True for the seeded styles
    """

    name: str = Field(description="Unique style name")
    prompt: str = Field(description="Generation instructions")
    is_system_default: bool = False


SYSTEM_STYLES: list[Style] = [
    Style(name=DEFAULT_STYLE_NAME, prompt=DEFAULT_STYLE_PROMPT, is_system_default=True),
    Style(
        name="humorous",
        prompt=(
            "Write with humor and wit. Use light-hearted commentary, clever observations, "
            "and entertaining language while maintaining informative value."
        ),
        is_system_default=True,
    ),
    Style(
        name="analytical",
        prompt=(
            "Focus on data-driven insights, trends, and deep analysis. Use precise language "
            "and highlight statistical significance and implications."
        ),
        is_system_default=True,
    ),
    Style(
        name="casual",
        prompt=(
            "Write in a friendly, conversational tone as if talking to a colleague. "
            "Be approachable and easy to understand."
        ),
        is_system_default=True,
    ),
    Style(
        name="apocalyptic",
        prompt=(
            "Frame everything as if the world is ending. Use dramatic, urgent language and "
            "treat every piece of news as a harbinger of doom."
        ),
        is_system_default=True,
    ),
    Style(
        name="orc",
        prompt=(
            "Write like a fantasy orc warrior. Use rough, aggressive language with lots of "
            "grunts and battle metaphors. WAAAAAGH!"
        ),
        is_system_default=True,
    ),
    Style(
        name="robot",
        prompt=(
            "BEEP BOOP. PROCESSING INFORMATION. USE ROBOTIC LANGUAGE WITH TECHNICAL PRECISION. "
            "ELIMINATE EMOTIONAL RESPONSES."
        ),
        is_system_default=True,
    ),
    Style(
        name="southern_belle",
        prompt=(
            "Write with Southern charm and hospitality. Use sweet, polite language with a "
            "touch of sass and regional expressions, darlin'."
        ),
        is_system_default=True,
    ),
    Style(
        name="apologetic",
        prompt=(
            "Apologize for everything. Feel sorry about all the news being reported. "
            "Use hesitant, self-deprecating language."
        ),
        is_system_default=True,
    ),
    Style(
        name=PERMISSIVE_STYLE_NAME,
        prompt=(
            "Use uncensored, explicit language. Don't hold back on profanity when expressing "
            "opinions about the news. Adult content warning."
        ),
        is_system_default=True,
    ),
]
