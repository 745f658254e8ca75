"""
API routers.

- public: health checks
- diner: table occupancy, cart, checkout and menu for diner sessions
- admin: staff endpoints under /api/admin
"""
