"""
Extraction layer: request building, response recovery, escalation and
aggregation.
"""

from quotex.extract.aggregator import Aggregator
from quotex.extract.escalation import EscalationController
from quotex.extract.normalize import normalize_payload
from quotex.extract.recovery import RecoveredJSON, RecoveryParser, recover_json
from quotex.extract.requests import ExtractionRequest, build_request

__all__ = [
    "Aggregator",
    "EscalationController",
    "ExtractionRequest",
    "RecoveredJSON",
    "RecoveryParser",
    "build_request",
    "normalize_payload",
    "recover_json",
]
