"""livevoice - real-time voice sessions with the Gemini Live API."""

__version__ = "0.1.0"
