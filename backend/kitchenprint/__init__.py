"""
KitchenPrint - print dispatch back office for restaurant POS
"""
__version__ = "1.0.0"
