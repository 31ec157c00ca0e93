"""
Document Governance Portal
Multi-tenant document access control, sharing and magic links
"""

__version__ = "1.0.0"
