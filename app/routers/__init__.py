"""
ShopLedger - API Routers Package
"""
