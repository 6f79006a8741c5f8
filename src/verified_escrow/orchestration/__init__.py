"""Orchestration layer — the per-escrow decision workflow."""

from verified_escrow.orchestration.escrow_workflow import EscrowWorkflow, error_envelope

__all__ = ["EscrowWorkflow", "error_envelope"]
