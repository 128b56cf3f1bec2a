"""QuickLink Pay Super Admin RBAC back end."""
