"""Core interfaces/abstractions.

Why:
- Defines contracts (Protocol) implemented by concrete adapters.
- Inverts dependencies: the pipeline depends on abstractions, so tests can
  swap HPCMSL and real installers for in-memory fakes.
"""
