"""
Shared helpers: errors, SSE framing, WAV container, identifiers.
"""
