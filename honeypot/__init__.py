"""
Agentic Honey-Pot
=================

Scam-detection honeypot that engages fraudsters with a victim persona and
extracts actionable intelligence:
    - main.py       : FastAPI application and routes
    - pipeline.py   : Per-turn processing and session finalization
    - signals.py    : Pattern, linguistic and context signal detectors
    - classifier.py : Naive Bayes statistical detector (numpy)
    - detector.py   : Weighted score combiner and intent classifier
    - agent.py      : Phase/strategy conversation agent
    - templates.py  : Persona strategies and reply templates
    - extractor.py  : Regex-based intelligence extraction and risk score
    - memory.py     : Thread-safe in-memory session store and lifecycle
    - callback.py   : Final report builder and retrying sender
    - auth.py       : API key authentication
    - models.py     : Pydantic request/response schemas
"""

__version__ = "1.0.0"
