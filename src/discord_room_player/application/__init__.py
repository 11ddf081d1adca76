"""
Application Layer

Orchestrates domain objects and infrastructure adapters.

Structure:
- services/: the per-room playback state machine and the session registry
- interfaces/: Port interfaces for infrastructure adapters
"""
