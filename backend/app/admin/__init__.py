"""Admin surface: access dependencies, routers and the audit trail."""

__all__: list[str] = []
