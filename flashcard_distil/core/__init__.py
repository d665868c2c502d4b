"""
Core functionality for the Flashcard Distiller.

This package contains the main logic for:
- Settings and environment configuration
- Placement of generated flashcard notes in the mirrored output tree
- Vault (content store) access
- Generation service access for LLM providers
- Response extraction and sanitation
- The end-to-end distillation pipeline
"""
