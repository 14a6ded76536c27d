"""
Prompts del analizador de problemas.
"""

from __future__ import annotations

from string import Template


ANALYSIS_FIELDS = """{
  "extractedText": $extracted_text,
  "confidence": $confidence,
  "topics": ["topic1", "topic2"] - mathematical topics this problem covers,
  "concepts": ["concept1", "concept2"] - key concepts needed to solve this,
  "gradeEstimate": "estimated grade level (e.g., 'Grade 5-6')",
  "safeRephrase": "restate the problem clearly without solving it",
  "problemType": "algebra|arithmetic|geometry|word-problem|percentage|ratio|pattern|other"
}"""


IMAGE_ANALYSIS_PROMPT = (
    "Extract the math problem from this image. Return ONLY a JSON object with these fields:\n"
    + Template(ANALYSIS_FIELDS).substitute(
        extracted_text='"the exact math problem text extracted from the image"',
        confidence="0.0 to 1.0 indicating how confident you are in the extraction",
    )
    + """

Be precise with mathematical notation. Use ^ for exponents, * for multiplication, / for division.
For fractions, use format like "3/4" or write them out.
Do NOT solve the problem. Only extract and analyze it."""
)


TEXT_ANALYSIS_TEMPLATE = Template(
    "Analyze this math problem (do NOT solve it). Return ONLY a JSON object:\n"
    + Template(ANALYSIS_FIELDS).safe_substitute(confidence="1.0")
    + "\n\nProblem: $problem_text"
)


DEFAULT_IMAGE_MIME = "image/jpeg"


def format_text_analysis_prompt(problem_text: str) -> str:
    # Template no reinterpreta los $ que aparezcan en el problema
    return TEXT_ANALYSIS_TEMPLATE.substitute(
        extracted_text=f'"{problem_text}"',
        problem_text=problem_text,
    )


def image_data_url(image_base64: str) -> str:
    """Acepta base64 crudo o una data URL completa."""
    if image_base64.startswith("data:"):
        return image_base64
    return f"data:{DEFAULT_IMAGE_MIME};base64,{image_base64}"


__all__ = [
    "IMAGE_ANALYSIS_PROMPT",
    "TEXT_ANALYSIS_TEMPLATE",
    "format_text_analysis_prompt",
    "image_data_url",
]
