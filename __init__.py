# sales_orders/__init__.py
"""
Sales-order pricing, GST and payment-reconciliation engine for the admin
console's order-creation workflow.
"""

__version__ = "0.1.0"
