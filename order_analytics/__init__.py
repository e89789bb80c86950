"""
Order Analytics

Batch transformation of raw e-commerce customer/order/item records into a
deduplicated order-grain fact table and its aggregate views.
"""

__version__ = "1.0.0"
