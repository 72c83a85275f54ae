"""
schemas/ — Pydantic request models for the PrintFlow API

Validates input at the router boundary; ledger rules (routing, amounts,
PO number format) are enforced again in services/.
"""
