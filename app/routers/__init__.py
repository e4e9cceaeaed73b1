"""
manageRTC Payroll - Routers Package

FastAPI route handlers.

Routers:
- payroll: Computation, generation, workflow and payslips
"""

from app.routers import payroll

__all__ = ["payroll"]
