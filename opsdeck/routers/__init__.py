"""
FastAPI routers grouped by domain (servers, services, domains, backup, sync).

Each module exposes an APIRouter included by app.py. Handlers resolve the
repository/services from ``request.app.state`` so one store instance is
shared by every request.
"""
