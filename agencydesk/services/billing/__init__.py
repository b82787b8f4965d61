"""Billing rate resolution engine.

Answers "how much does this client owe next, and when": tier progression
by completed payments, rate calculation, next-payment scheduling, the
per-post usage ledger and the archive gate.
"""
