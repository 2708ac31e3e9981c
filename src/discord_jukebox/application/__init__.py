"""
Application Layer

Contains use cases, command handlers, and application services.
This layer orchestrates domain objects and infrastructure to fulfill use cases.

Structure:
- commands/: write operations (PlayTrackCommand)
- services/: the guild queue manager and the playback driver
- interfaces/: Port interfaces for infrastructure adapters
"""
