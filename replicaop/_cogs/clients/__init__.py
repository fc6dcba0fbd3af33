"""
Kubernetes API communication, built directly on top of ``aiohttp``.
"""
