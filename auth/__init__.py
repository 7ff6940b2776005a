"""auth/ -- Authentication and password-reset package for the forum backend.

Layer rule: auth/ imports only stdlib, third-party libraries, core/ and cache/.
It does NOT import from api/ or posts/.
api/ imports from auth/, not the other way around.
"""
