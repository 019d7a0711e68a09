"""auth/ -- Authentication package for metricboard: credential store, tokens, and the auth gate.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/, metrics/, or realtime/.
api/ and realtime/ import from auth/, not the other way around.
"""
