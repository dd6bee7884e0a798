"""
Legal Analysis Pipeline
=======================

Turns fact-extraction output for a small-claims dispute into structured legal
conclusions:
1. Legal issue classification
2. Burden-of-proof determination
3. Damages calculation (interest, statutory caps and minimums)
4. Conclusions of law and award recommendation
5. Confidence scoring

An LLM is used for the judgment-heavy steps when configured; every step has a
rule-based fallback.
"""

__version__ = "1.0.0"
