"""Bookstore vertical: checkout discounts.

Wires the generic patterns into one domain:
- Bulk, Friday and volume-tier discount rules
- Default rule configuration and file/env resolution
- DiscountService facade owning one rule engine
- FastAPI router with pydantic request/response schemas
"""
