"""
Analizador de problemas de mathcoach.

Extrae y clasifica el enunciado (texto o foto) sin resolverlo:

    from mathcoach.agents.analyzer import ProblemAnalyzer

    analyzer = ProblemAnalyzer.create()
    analysis = await analyzer.analyze(image_base64=photo)
    if analysis.confidence_band != ConfidenceBand.HIGH:
        ...  # pedir al estudiante que revise el texto
"""

from mathcoach.agents.analyzer.agent import ProblemAnalyzer
from mathcoach.agents.analyzer.parser import AnalysisParser
from mathcoach.agents.analyzer.prompts import (
    IMAGE_ANALYSIS_PROMPT,
    format_text_analysis_prompt,
    image_data_url,
)

__all__ = [
    "ProblemAnalyzer",
    "AnalysisParser",
    "IMAGE_ANALYSIS_PROMPT",
    "format_text_analysis_prompt",
    "image_data_url",
]
