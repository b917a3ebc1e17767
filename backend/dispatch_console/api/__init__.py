"""
RAPID Dispatch Console - API Package

- routes: REST endpoints (console management, call control, health)
- websocket: live console stream
- schemas: request/response models
"""
