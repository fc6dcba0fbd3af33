"""
General-purpose helpers not related to the operator's domain.

Helpers MUST NOT import anything from the operator's own packages,
so that they could be extracted as reusable libraries if needed.
"""
