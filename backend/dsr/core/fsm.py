"""Simple finite state machine utility for enforcing allowed status transitions.

Used by the approval (Sale, Expense), convertible (HandBill, SalesOrder) and
voucher lifecycles.
Usage:
    from dsr.core.fsm import TransitionValidator
    APPROVAL_FSM = TransitionValidator({
        'pending': {'approved', 'rejected'},
        'approved': set(),
        'rejected': set(),
    }, field_name='approval_status')
    APPROVAL_FSM.assert_can_transition(current_status, target_status)

Raises InvalidStateError if invalid.
"""
from __future__ import annotations
from typing import Dict, Set
from dsr.core.errors import InvalidStateError, ValidationError


class TransitionValidator:
    def __init__(self, graph: Dict[str, Set[str]], field_name: str = 'status'):
        self.graph = graph
        self.field_name = field_name

    @property
    def states(self) -> Set[str]:
        return set(self.graph)

    def is_terminal(self, state: str) -> bool:
        return not self.graph.get(state)

    def assert_known(self, state: str) -> str:
        if state not in self.graph:
            raise ValidationError(f'{self.field_name} invalid')
        return state

    def assert_can_transition(self, current: str, target: str):
        self.assert_known(target)
        allowed = self.graph.get(current, set())
        if target not in allowed:
            raise InvalidStateError(
                f'Invalid {self.field_name} transition {current} -> {target}',
                details={'current': current, 'target': target},
            )
        return True


__all__ = ['TransitionValidator']
