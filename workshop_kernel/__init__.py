"""
Workshop Kernel - vehicle-repair workflow engine

Lifecycle state machines and cross-aggregate coordination for a repair shop:
- Table-driven status transitions for service orders, budgets and executions
- Non-fatal, inspectable cascades between correlated aggregates
- Append-only stock ledger with an atomic, never-negative decrement
- Classified retry with exponential backoff around persistence calls
"""

__version__ = "0.1.0"
