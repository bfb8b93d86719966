"""
Humsana
=======

Cognitive interlock for AI coding assistants: reads the user's behavioral
signals, estimates fatigue, and gates destructive shell commands and large
file rewrites behind an explicit, audited override.
"""

__version__ = "2.1.0"
