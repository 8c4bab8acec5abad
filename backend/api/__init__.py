"""
Battery Line MES - HTTP API routers
"""
