"""
Shared infrastructure for the chat relay: configuration, logging, Redis clients.
"""
