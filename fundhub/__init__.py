"""
FundHub Backend Package

FastAPI-based backend for an investment-management platform.
Provides REST API endpoints for fund structures, investor commitments,
waterfall distribution tiers and distributions.
"""
