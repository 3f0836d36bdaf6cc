"""
Gigboard Backend Application Package

This package contains the FastAPI backend for the Gigboard freelance
marketplace, including:

- main.py: FastAPI application and router wiring
- services/quota_ledger.py: proposal-submission quota accounting
- services/proposal_store.py: proposal and milestone lifecycle
- services/cache_service.py: read-through profile cache
- services/provisioning_service.py: freelancer profile + quota account setup
"""

__version__ = "1.0.0"
