"""Beginner-friendly overview for this module.

WHAT: FastAPI dependencies shared by the API routers.
WHEN: Resolved by FastAPI for every request that declares them.
WHY: Keeps authentication, staff attribution and service lookup out of the
route functions.
HOW: ``auth`` checks the API key and reads staff headers; ``ledger`` hands out
the services the application factory stored on ``app.state``.

File: rental_ledger/deps/__init__.py
"""
