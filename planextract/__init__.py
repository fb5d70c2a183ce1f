"""
Planning Document Extraction Pipeline.

This package turns environmental and agricultural planning documents into
structured, verified records:
- Preprocessing and section detection
- Document type classification
- LLM extraction with hallucination filtering
- Validation and confidence scoring
- Accuracy testing against curated ground truth
"""

__version__ = "0.3.0"
