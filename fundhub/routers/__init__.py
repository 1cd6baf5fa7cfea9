"""
FundHub API Routers

Each module in this package defines a FastAPI APIRouter for one area of
the application (structures, waterfall tiers, distributions).
Routers are included in the main FastAPI app in main.py.
"""
