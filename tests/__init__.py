"""
Test suite for the Flashcard Distiller.

This package contains tests for all core functionality including:
- Type definitions and data structures
- Placement of flashcard notes in the mirrored output tree
- Response extraction and sanitation
- Settings and environment configuration
- The generation service
- End-to-end distillation runs and the CLI
"""
