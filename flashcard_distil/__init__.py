"""
Flashcard Distiller - turn vault notes into spaced-repetition flashcard notes.
"""

__version__ = "0.1.0"
