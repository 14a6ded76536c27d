"""
Detectores del motor de guardrails.
"""

from mathcoach.guardrails.detectors.message_classifier import ClassificationResult, MessageClassifier
from mathcoach.guardrails.detectors.response_scanner import LeakScanResult, ResponseScanner

__all__ = [
    "MessageClassifier",
    "ClassificationResult",
    "ResponseScanner",
    "LeakScanResult",
]
