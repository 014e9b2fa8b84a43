"""auth/ -- Credential, token, session, and rate-limit core for CondoSwift.

Layer rule: auth/ imports only stdlib + third-party libraries.
It does NOT import from api/ or core/. Settings values are passed in by
api/main.py when the components are constructed.
api/ imports from auth/, not the other way around.
"""
