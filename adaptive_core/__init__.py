"""
Adaptive Dialog Engine
======================

Event-driven conversational dialog runtime.

This package provides:
- An action sequencer that applies queued plan edits to a fixpoint
- A two-phase (pre/post bubble) event dispatch state machine
- Entity normalization of recognizer output
- Candidate generation, disambiguation and assignment of entities to
  dialog schema properties
- A small host (DialogManager) that drives turns against stored state
"""

__version__ = "1.0.0"
