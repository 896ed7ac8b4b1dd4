"""
BASIC V2 Toolkit

Tooling for programs written in the Commodore BASIC V2 dialect.

Four capabilities share one program representation (numbered lines):
    - Simulated execution on a 40x25 virtual screen
    - PRG export (tokenized on-disk layout)
    - Static analysis ("lint")
    - Deterministic, rule-based repair of common dialect violations

ARCHITECTURAL GUARANTEE:
------------------------
Every entry point takes plain program text and returns data.
Nothing here talks to a network, a model or a persistent store.
Malformed programs become findings, log lines or untouched text,
never exceptions (the PRG encoder on an empty program is the one exception).
"""

__version__ = "0.1.0"
