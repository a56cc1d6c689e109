"""
Integration modules for cardgate

Contains adapters and clients for external systems:
- Payment gateways (Braintree, Spreedly)
"""
