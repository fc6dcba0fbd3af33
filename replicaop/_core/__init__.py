"""
The operator's own behaviour: the reconciliation, the dispatching, the process.
"""
