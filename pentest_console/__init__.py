"""
Pentest Console Package

This package contains the web console for pentest pipeline runs:
- api: FastAPI application and route modules
- auth: Users, bcrypt credentials and server-side sessions
- core: Service container and the workflow engine client
- services: Settings, YAML configs, audit logs and provider key checks
- worker: Supervision of the background pipeline worker
- tests: Test suites
"""
