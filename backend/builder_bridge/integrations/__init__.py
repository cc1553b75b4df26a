"""
Clients for external systems: the document store and the Shopify Admin API.
"""
