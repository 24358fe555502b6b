"""Outcome of a single readiness check.

A check yields exactly one of:

* ``Ready`` - the check passed, evaluation moves on to the next check.
* ``NotReady`` - an expected, transient condition. Never raised, folded into
  the Progressing/Available conditions. ``available`` is False when the
  operand must be reported unavailable, True when an older version keeps
  serving during a rollout and None to leave Available untouched.
* ``Failed`` - the check could not be carried out; aborts the cycle.
"""
from typing import NamedTuple, Optional, Union


class Ready(NamedTuple):
    ready = True
    reason = ""
    message = ""


class NotReady(NamedTuple):
    reason: str
    message: str
    available: Optional[bool] = False
    available_reason: str = ""

    ready = False


class Failed(NamedTuple):
    error: Exception
    reason: str = ""

    ready = False

    @property
    def message(self) -> str:
        return str(self.error)


READY = Ready()

Outcome = Union[Ready, NotReady, Failed]
