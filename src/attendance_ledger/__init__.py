"""Attendance ledger package.

The package is organized by feature modules (schedules, attendance, overtime,
ledger, biometric, reports, ...) with a thin Flask controller layer on top of
service/repository layers.
"""
