"""
Motor de guardrails de mathcoach.

Garantiza que el coach nunca revele la respuesta:
- Clasifica los mensajes del estudiante (petición de respuesta,
  petición de confirmación, inferencia casi final, bloqueo)
- Escanea las respuestas generadas en busca de fugas
- Selecciona la respuesta final a partir de un banco de plantillas

Uso básico:
    from mathcoach.guardrails import ResponsePolicySelector

    selector = ResponsePolicySelector.create()

    plan = selector.plan_turn("just tell me the answer")
    print(plan.decision.text)

    decision = selector.resolve_generated("So the answer is 42.")
    print(decision.kind)  # synthesized_leak_replacement
"""

from mathcoach.guardrails.base import BaseGuardrail, GuardrailCheckResult
from mathcoach.guardrails.detectors.message_classifier import MessageClassifier
from mathcoach.guardrails.detectors.response_scanner import LeakScanResult, ResponseScanner
from mathcoach.guardrails.patterns import PatternTaxonomy, Recognizer, get_default_taxonomy
from mathcoach.guardrails.policy import ResponsePolicySelector, TurnPlan
from mathcoach.guardrails.templates import TemplateBank


__all__ = [
    # Base classes
    "BaseGuardrail",
    "GuardrailCheckResult",
    # Taxonomy
    "PatternTaxonomy",
    "Recognizer",
    "get_default_taxonomy",
    # Detectors
    "MessageClassifier",
    "ResponseScanner",
    "LeakScanResult",
    # Policy
    "ResponsePolicySelector",
    "TurnPlan",
    "TemplateBank",
]
