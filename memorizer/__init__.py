"""
Word Memorizer - spaced repetition scheduling for vocabulary cards.

The scheduling engine lives in memorizer.fsrs; storage, analytics and the
command line are thin collaborators around it.
"""

__version__ = "0.1.0"
