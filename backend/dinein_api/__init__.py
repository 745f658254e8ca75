"""
Dine-in REST API: table occupancy, carts, orders and menu management.
"""
