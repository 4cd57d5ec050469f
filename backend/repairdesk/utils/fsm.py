"""Simple finite state machine utility for enforcing allowed status transitions.

Designed for lightweight lifecycle models (Job, Invoice).
Usage:
    from repairdesk.utils.fsm import TransitionValidator
    INVOICE_FSM = TransitionValidator({
        'draft': {'sent'},
        'sent': {'paid', 'overdue'},
        'overdue': {'paid'},
        'paid': set(),
    })
    INVOICE_FSM.assert_can_transition(current_status, target_status)

Raises 400 abort if invalid.
"""
from __future__ import annotations
from typing import Dict, Set, List
from flask import abort


class TransitionValidator:
    def __init__(self, graph: Dict[str, Set[str]], field_name: str = 'status'):
        self.graph = graph
        self.field_name = field_name

    def can_transition(self, current: str, target: str) -> bool:
        return target in self.graph.get(current, set())

    def allowed_from(self, current: str) -> List[str]:
        return sorted(self.graph.get(current, set()))

    def assert_can_transition(self, current: str, target: str):
        if not self.can_transition(current, target):
            abort(400, description=f"Invalid {self.field_name} transition {current} -> {target}")
        return True

__all__ = ['TransitionValidator']
