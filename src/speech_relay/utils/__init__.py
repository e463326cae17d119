"""
Utility Modules for speech-relay.

    - timeit.py: Performance measurement utilities
"""
