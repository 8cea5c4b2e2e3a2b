"""Kanban API backend.

A FastAPI service for kanban boards whose storage access goes through a
connection lifecycle manager built for serverless and long-running
deployments alike.

Architecture Overview:
- **API Layer**: FastAPI application, health routes and middleware
- **Core Layer**: Configuration, logging and the error hierarchy
- **Infrastructure Layer**: Database driver, connection manager and health checks
- **Tools**: Operational helpers such as the keep-warm pinger
"""
