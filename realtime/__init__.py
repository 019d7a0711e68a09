"""realtime/ -- WebSocket fanout of metric change events.

Layer rule: realtime/ imports only stdlib, third-party libraries, and auth/.
api/ imports from realtime/, not the other way around.
"""
