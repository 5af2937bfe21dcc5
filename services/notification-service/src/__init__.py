"""Proactive monitoring and notification orchestration for budgets, savings goals and transaction habits."""
