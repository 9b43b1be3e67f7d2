"""auth/ -- Credential store and session tokens for BugTracker.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/ or bugs/.
api/ and bugs/ import from auth/, not the other way around.
"""
