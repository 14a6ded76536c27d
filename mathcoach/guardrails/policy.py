"""
Selector de política de respuesta.

Decide qué recibe el estudiante en cada turno:

1. Clasifica el mensaje. Las categorías de redirección dura
   (AnswerSeeking, ConfirmationSeeking, NearFinal, Stuck) producen una
   respuesta sintetizada del banco de plantillas y el generador NO se llama.
2. Si no hay redirección, el llamador invoca al generador y pasa el texto
   a `resolve_generated`, que lo escanea. Una fuga se descarta y se sustituye
   por un rechazo más una pregunta de reenfoque.

La única excepción a la redirección dura es ConfirmationSeeking con la
política ALLOW_WITH_WORK cuando el mensaje muestra trabajo: entonces se
llama al generador con permiso para validar el razonamiento. Su salida se
escanea igual que cualquier otra.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from config.settings import (
    ConfirmationPolicy,
    FormulaDumpAction,
    GuardrailsConfig,
    get_settings,
)
from mathcoach.core.types import Category, PolicyDecision
from mathcoach.guardrails.detectors.message_classifier import MessageClassifier
from mathcoach.guardrails.detectors.response_scanner import LeakScanResult, ResponseScanner
from mathcoach.guardrails.patterns import PatternTaxonomy, get_default_taxonomy
from mathcoach.guardrails.templates import TemplateBank
from mathcoach.utils.logging import get_logger
from mathcoach.utils.metrics import CoachMetrics, get_coach_metrics

logger = get_logger(__name__)


@dataclass(frozen=True)
class TurnPlan:
    """
    Plan para un mensaje del estudiante.

    Attributes:
        category: Categoría asignada por el clasificador.
        decision: Respuesta sintetizada, o None si hay que llamar al generador.
        allow_confirmation: Si el generador puede validar el razonamiento mostrado.
    """

    category: Category
    decision: PolicyDecision | None = None
    allow_confirmation: bool = False

    @property
    def requires_generator(self) -> bool:
        return self.decision is None


class ResponsePolicySelector:
    """
    Punto único de decisión del motor de guardrails.

    Example:
        ```python
        selector = ResponsePolicySelector.create()
        plan = selector.plan_turn("just tell me the answer")
        plan.decision.kind   # DecisionKind.SYNTHESIZED_REDIRECT

        plan = selector.plan_turn("I think we should add the rows first")
        if plan.requires_generator:
            decision = selector.resolve_generated(await generate(...))
        ```
    """

    def __init__(
        self,
        classifier: MessageClassifier | None = None,
        scanner: ResponseScanner | None = None,
        templates: TemplateBank | None = None,
        config: GuardrailsConfig | None = None,
        metrics: CoachMetrics | None = None,
    ) -> None:
        self.config = config or get_settings().guardrails
        self.classifier = classifier or MessageClassifier()
        self.scanner = scanner or ResponseScanner()
        self.templates = templates or TemplateBank()
        self.metrics = metrics or get_coach_metrics()

    @classmethod
    def create(
        cls,
        config: GuardrailsConfig | None = None,
        taxonomy: PatternTaxonomy | None = None,
        metrics: CoachMetrics | None = None,
    ) -> "ResponsePolicySelector":
        """
        Construye el selector a partir de la configuración.

        Carga el banco de plantillas del YAML configurado, si lo hay, y
        siembra su fuente aleatoria con `template_seed`.
        """
        config = config or get_settings().guardrails
        taxonomy = taxonomy or get_default_taxonomy()

        rng = random.Random(config.template_seed)
        templates_path = cls._templates_path(config)
        if templates_path is not None:
            templates = TemplateBank.from_yaml(templates_path, rng=rng)
        else:
            templates = TemplateBank(rng=rng)

        return cls(
            classifier=MessageClassifier(taxonomy),
            scanner=ResponseScanner(taxonomy),
            templates=templates,
            config=config,
            metrics=metrics,
        )

    @staticmethod
    def _templates_path(config: GuardrailsConfig) -> Path | None:
        if not config.templates_file:
            return None
        path = Path(config.templates_file)
        if not path.is_absolute():
            path = get_settings().config_dir / path
        return path

    # =========================================================================
    # Mensajes del estudiante
    # =========================================================================

    def plan_turn(self, student_message: str) -> TurnPlan:
        """
        Clasifica el mensaje y decide si se responde sin el generador.

        Args:
            student_message: Texto del estudiante.

        Returns:
            TurnPlan con la decisión sintetizada o sin ella.
        """
        category = self.classifier.classify(student_message)
        self.metrics.record_classification(category.value)

        if category == Category.ANSWER_SEEKING:
            return self._redirect(category, self.templates.answer_redirect())

        if category == Category.CONFIRMATION_SEEKING:
            if self._confirmation_permitted(student_message):
                logger.info("confirmation_with_work_permitted")
                return TurnPlan(category=category, allow_confirmation=True)
            return self._redirect(category, self.templates.justification_request)

        if category == Category.NEAR_FINAL:
            return self._redirect(category, self.templates.near_final_nudge)

        if category == Category.STUCK:
            return self._redirect(category, self.templates.persistence_nudge())

        return TurnPlan(category=Category.NONE)

    def _confirmation_permitted(self, student_message: str) -> bool:
        if self.config.confirmation_policy != ConfirmationPolicy.ALLOW_WITH_WORK:
            return False
        return not self.classifier.is_bare_guess(student_message)

    def _redirect(self, category: Category, text: str) -> TurnPlan:
        self.metrics.record_redirect(category.value)
        logger.info("synthesized_redirect", category=category.value)
        return TurnPlan(category=category, decision=PolicyDecision.redirect(category, text))

    # =========================================================================
    # Respuestas generadas
    # =========================================================================

    def resolve_generated(self, generated_text: str) -> PolicyDecision:
        """
        Escanea una respuesta del generador y decide si se entrega.

        Returns:
            PASS_THROUGH con el texto tal cual, o
            SYNTHESIZED_LEAK_REPLACEMENT si había fuga.
        """
        scan = self.scanner.scan(generated_text)
        if scan.leaked:
            self._record_leak(scan, generated_text)
            return PolicyDecision.leak_replacement(
                self.templates.leak_replacement(),
                scan.primary_category,
            )

        if scan.formula_dump:
            action = self.config.formula_dump_action
            if action != FormulaDumpAction.IGNORE:
                self.metrics.record_formula_dump(action.value)
                logger.info(
                    "formula_dump_detected",
                    action=action.value,
                    response_preview=generated_text[:100],
                )
            if action == FormulaDumpAction.REPLACE:
                return PolicyDecision.leak_replacement(
                    self.templates.leak_replacement(),
                    Category.FORMULA_DUMP,
                )

        return PolicyDecision.pass_through(generated_text)

    def resolve_hint(self, tier: int, generated_text: str) -> PolicyDecision:
        """
        Escanea el texto de una pista.

        Una pista con fuga se sustituye por la pista determinista del nivel;
        el nivel se concede igualmente.
        """
        scan = self.scanner.scan(generated_text)
        if scan.leaked:
            self._record_leak(scan, generated_text, hint_tier=tier)
            return PolicyDecision.hint(tier, self.templates.fallback_hint(tier))
        return PolicyDecision.hint(tier, generated_text)

    def fallback(self, reason: str) -> PolicyDecision:
        """Respuesta fija cuando el generador no está disponible."""
        self.metrics.record_generator_fallback(reason)
        return PolicyDecision.fallback(self.templates.generator_fallback)

    def hint_fallback(self, tier: int, reason: str) -> PolicyDecision:
        """Pista determinista cuando el generador no está disponible."""
        self.metrics.record_generator_fallback(reason)
        return PolicyDecision.fallback(self.templates.fallback_hint(tier), hint_tier=tier)

    def hint_rejected(self) -> PolicyDecision:
        self.metrics.record_hint_rejected()
        return PolicyDecision.hint_rejected(self.templates.no_hint_available)

    def _record_leak(
        self,
        scan: LeakScanResult,
        generated_text: str,
        hint_tier: int | None = None,
    ) -> None:
        self.metrics.record_leak([c.value for c in scan.categories])
        logger.warning(
            "leak_detected",
            categories=[c.value for c in scan.categories],
            patterns=list(scan.matched_patterns),
            hint_tier=hint_tier,
            response_preview=generated_text[:100],
        )

    # =========================================================================
    # Estado
    # =========================================================================

    def get_status(self) -> dict[str, Any]:
        """Configuración activa del motor, para diagnóstico."""
        return {
            "confirmation_policy": self.config.confirmation_policy.value,
            "formula_dump_action": self.config.formula_dump_action.value,
            "categories": [c.value for c in self.classifier.taxonomy.categories()],
            "refusal_templates": len(self.templates.refusals),
            "persistence_templates": len(self.templates.persistence),
        }


__all__ = ["TurnPlan", "ResponsePolicySelector"]
