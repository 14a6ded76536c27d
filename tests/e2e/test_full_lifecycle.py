"""
Tests end-to-end: del análisis del problema al archivo de la sesión.

El generador está sustituido por un doble; todo lo demás (clasificador,
escáner, plantillas, pistas, sesiones) es real.
"""

import json

import pytest

from mathcoach.agents.analyzer import ProblemAnalyzer
from mathcoach.core.types import Category, DecisionKind, SessionRecord, TurnRole
from mathcoach.guardrails.templates import (
    ANSWER_REDIRECT_QUESTION,
    JUSTIFICATION_REQUEST,
    LEAK_REDIRECT_QUESTION,
    NO_HINT_AVAILABLE,
    PERSISTENCE_TEMPLATES,
    REFUSAL_TEMPLATES,
)

PROBLEM = "If 3x + 7 = 22, what is x?"


class MemoryArchive:
    """Archivo en memoria que cumple el protocolo SessionArchive."""

    def __init__(self) -> None:
        self.records: list[SessionRecord] = []

    async def save(self, record: SessionRecord) -> None:
        self.records.append(record)


@pytest.mark.e2e
class TestGuardrailScenarios:
    """Escenarios completos de una sesión de coaching."""

    @pytest.mark.asyncio
    async def test_answer_request_is_refused(self, make_agent, make_model):
        model = make_model("unused")
        coach = make_agent(model)
        session = await coach.start_session(PROBLEM)

        decision = await coach.respond(session.session_id, "What's the final answer?")

        refusal, question = decision.text.split("\n\n")
        assert refusal in REFUSAL_TEMPLATES
        assert question == ANSWER_REDIRECT_QUESTION
        model.generate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_bare_guess_needs_justification(self, make_agent, make_model):
        model = make_model("unused")
        coach = make_agent(model)
        session = await coach.start_session(PROBLEM)

        decision = await coach.respond(session.session_id, "is 42 correct?")

        assert decision.category == Category.CONFIRMATION_SEEKING
        assert decision.text == JUSTIFICATION_REQUEST
        model.generate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_leaked_answer_is_replaced(self, make_agent, make_model):
        coach = make_agent(make_model("The answer is 17."))
        session = await coach.start_session(PROBLEM)

        decision = await coach.respond(session.session_id, "What should I look at first?")

        assert decision.kind == DecisionKind.SYNTHESIZED_LEAK_REPLACEMENT
        assert "17" not in decision.text
        assert decision.text.endswith(LEAK_REDIRECT_QUESTION)

        stored = session.transcript.turns[-1]
        assert stored.role == TurnRole.COACH
        assert stored.content == decision.text

    @pytest.mark.asyncio
    async def test_three_hints_then_none(self, make_agent, make_model):
        coach = make_agent(make_model(
            "Think about which operations are applied to x.",
            "How could you undo adding 7?",
            "Subtract 7 from both sides. What is left to undo?",
        ))
        session = await coach.start_session(PROBLEM)

        granted = []
        for _ in range(3):
            decision = await coach.request_hint(session.session_id)
            granted.append(session.hint_state.hints_granted)
            assert decision.kind == DecisionKind.HINT

        fourth = await coach.request_hint(session.session_id)

        assert granted == [1, 2, 3]
        assert fourth.kind == DecisionKind.HINT_REJECTED
        assert fourth.text == NO_HINT_AVAILABLE
        assert session.hint_state.hints_granted == 3

    @pytest.mark.asyncio
    async def test_giving_up_gets_persistence_nudge(self, make_agent, make_model):
        model = make_model("unused")
        coach = make_agent(model)
        session = await coach.start_session(PROBLEM)

        decision = await coach.respond(session.session_id, "I give up, this is too hard")

        assert decision.category == Category.STUCK
        assert decision.text in PERSISTENCE_TEMPLATES
        model.generate.assert_not_awaited()


@pytest.mark.e2e
class TestFullLifecycle:
    """Análisis, sesión, pistas y cierre con archivo."""

    @pytest.mark.asyncio
    async def test_analyze_coach_and_archive(self, make_agent, make_model):
        analyzer = ProblemAnalyzer(text_model=make_model(json.dumps({
            "extractedText": PROBLEM,
            "topics": ["Algebra"],
            "concepts": ["Linear equations"],
            "gradeEstimate": "Grade 7",
            "safeRephrase": "Three times a number, plus seven, gives twenty-two.",
            "problemType": "algebra",
        }), model_id="fake/analysis"))
        archive = MemoryArchive()
        reflection_model = make_model(json.dumps({
            "conceptsPracticed": ["Linear equations"],
            "strategiesUsed": ["Inverse operations"],
            "reflectionQuestions": ["Why undo the + 7 before dividing?"],
        }), model_id="fake/reflection")
        coach = make_agent(
            make_model(
                "What is being done to x?",
                "Which operation undoes multiplying by 3?",
            ),
            reflection_model=reflection_model,
            archive=archive,
        )

        analysis = await analyzer.analyze(text=PROBLEM)
        session = await coach.start_session(analysis.extracted_text, analysis)
        assert "Three times a number" in session.transcript.turns[0].content

        reply = await coach.respond(session.session_id, "I see 3 times x and then + 7")
        assert reply.kind == DecisionKind.PASS_THROUGH
        hint = await coach.request_hint(session.session_id)
        assert hint.hint_tier == 1

        record = await coach.end_session(session.session_id, student_notes="Work backwards")

        assert archive.records == [record]
        assert record.hints_used == 1
        assert record.analysis.problem_type.value == "algebra"
        assert record.reflection.student_notes == "Work backwards"
        # bienvenida + estudiante + coach + pista
        assert len(record.transcript) == 4
        assert coach.session_manager.get_active_sessions_count() == 0
