"""
Ledger Assistant - Source Package

A conversational personal ledger: free text, receipt photos and voice
notes are classified by Gemini into income and expense records.

DESIGN PRINCIPLES:
1. AI proposes -> Ledger records -> Storage confirms
2. Local changes are optimistic, durable failures are compensated
3. Failures degrade to a reply or a notice, never a crash
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Ledger Assistant Team"
