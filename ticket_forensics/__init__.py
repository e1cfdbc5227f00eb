"""
Ticket Forensics

Forensic analysis of SEO support tickets: deterministic evidence, Handbook
rules and a constrained generative model behind a FastAPI service.
"""
__version__ = "0.1.0"
