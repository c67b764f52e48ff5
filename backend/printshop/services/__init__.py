"""Services module.

This module provides the service layer architecture:
- exceptions: Custom service exceptions
- pricing: Page-range parsing and print pricing
- sync: Sync channel, transports, publisher and the order reconciler
- orders: Order submission and status change orchestration
- external: Third-party API integrations (storefront orders API)
"""
