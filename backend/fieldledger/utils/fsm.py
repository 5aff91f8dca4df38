from __future__ import annotations
"""Small finite state machine for status lifecycles.

Usage:
    from fieldledger.utils.fsm import TransitionValidator
    REQUEST_FSM = TransitionValidator({
        'Pending': {'Approved', 'Rejected'},
        'Approved': set(),
        'Rejected': set(),
    })
    REQUEST_FSM.assert_can_transition(current_status, target_status)

Leaving a terminal state raises AlreadyProcessed; any other edge missing from
the graph raises ValidationError.
"""
from typing import Dict, Set
from fieldledger.errors import AlreadyProcessed, ValidationError


class TransitionValidator:
    def __init__(self, graph: Dict[str, Set[str]], field_name: str = 'status'):
        self.graph = graph
        self.field_name = field_name

    @property
    def states(self) -> Set[str]:
        return set(self.graph)

    def is_terminal(self, state: str) -> bool:
        return state in self.graph and not self.graph[state]

    def sources_for(self, target: str) -> Set[str]:
        return {src for src, targets in self.graph.items() if target in targets}

    def assert_can_transition(self, current: str, target: str):
        if target not in self.graph:
            raise ValidationError(f"Unknown {self.field_name} {target}")
        if self.is_terminal(current):
            raise AlreadyProcessed(f"Request has already been {current.lower()}")
        allowed = self.graph.get(current, set())
        if target not in allowed:
            raise ValidationError(f"Invalid {self.field_name} transition {current} -> {target}")
        return True

__all__ = ['TransitionValidator']
