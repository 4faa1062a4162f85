"""
Shared modules: configuration, logging, errors, IPC, timers and the settings API client.
"""
