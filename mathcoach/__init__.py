"""
mathcoach - Coach de matemáticas con guardrails.

Un coach al estilo RSM que guía al estudiante con preguntas y pistas
escalonadas sin revelar nunca la respuesta final.

Módulos principales:
- `core`: Tipos, estructuras de datos y excepciones
- `guardrails`: Taxonomía de patrones, clasificador, escáner y política
- `agents`: Coach (sesiones, pistas, reflexión) y analizador de problemas
- `models`: Adaptadores de generadores de texto (Ollama, OpenAI compatible)
- `services`: API HTTP con FastAPI
- `utils`: Logging y métricas

Ejemplo de uso rápido:
    ```python
    from mathcoach.guardrails import ResponsePolicySelector

    selector = ResponsePolicySelector.create()
    plan = selector.plan_turn("what's the answer?")
    print(plan.decision.text)  # rechazo + pregunta de reenfoque
    ```
"""

__version__ = "0.1.0"
