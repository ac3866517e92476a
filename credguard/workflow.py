# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Workflow primitives shared by the orchestrators.

:class:`StateMachine` holds a named state and enforces an explicit
transition table. :class:`SubmissionSequencer` implements the supersede
policy: every submission is tagged with a monotonically increasing
number and only the newest one may publish its result. Network calls
are never cancelled; stale completions are simply ignored.
"""

import logging
from enum import Enum
from typing import Generic, Mapping, TypeVar

from credguard.exceptions import InvalidTransitionError

log = logging.getLogger(__name__)

S = TypeVar("S", bound=Enum)


class StateMachine(Generic[S]):
    """Finite-state machine with guarded transitions."""

    def __init__(self, name: str, initial: S, transitions: Mapping[S, frozenset]):
        self.name = name
        self._initial = initial
        self._state = initial
        self._transitions = transitions

    @property
    def state(self) -> S:
        return self._state

    def can_transition(self, target: S) -> bool:
        return target in self._transitions.get(self._state, frozenset())

    def transition(self, target: S) -> None:
        """Move to ``target``; raises InvalidTransitionError if not allowed."""
        if not self.can_transition(target):
            raise InvalidTransitionError(self.name, self._state.name, target.name)
        log.debug(f"{self.name}: {self._state.name} -> {target.name}")
        self._state = target

    def reset(self) -> None:
        """Return to the initial state unconditionally."""
        if self._state is not self._initial:
            log.debug(f"{self.name}: {self._state.name} -> {self._initial.name} (reset)")
        self._state = self._initial


class SubmissionSequencer:
    """Latest-wins sequence tagging for overlapping submissions."""

    def __init__(self) -> None:
        self._latest = 0

    @property
    def latest(self) -> int:
        return self._latest

    def next(self) -> int:
        """Tag a new submission; every earlier one becomes stale."""
        self._latest += 1
        return self._latest

    def is_current(self, sequence: int) -> bool:
        return sequence == self._latest

    def invalidate(self) -> None:
        """Make every in-flight submission stale (used on reset)."""
        self._latest += 1
