"""Parcelas app module.

Provides the FastAPI ops router for the reconciliation agent.
"""
