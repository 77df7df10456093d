"""
memochat - streaming chat with a self-editing long-term memory.
"""

__version__ = "0.1.0"
