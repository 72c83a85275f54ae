"""
routers/ — FastAPI route modules, one APIRouter per resource.

Routers parse requests, call the settlement services, and serialize
ledger rows to dicts. Commits happen in the services.
"""
