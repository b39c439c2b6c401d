"""Core primitives for the users data-access layer.

Modules in this package stay framework-agnostic: configuration, the envelope
and record models, request dispatch, validation and debounce.
"""
