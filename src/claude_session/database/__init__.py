"""Companion database subpackage.

Public surface
--------------
- CompanionDatabase  — deterministic names and connection URL for a session
- DatabaseBinding    — provision / readiness / teardown of companion databases
"""
from __future__ import annotations

from claude_session.database.companion import CompanionDatabase, DatabaseBinding

__all__ = ["CompanionDatabase", "DatabaseBinding"]
