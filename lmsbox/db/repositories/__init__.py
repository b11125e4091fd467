"""
Per-domain repository modules for database access.

Each module owns the queries for one aggregate (organizations, courses,
quizzes, ...). Services and routers call these functions instead of building
queries inline.
"""
