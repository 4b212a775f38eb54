"""HR Scope — scoped HR analytics and role dashboards."""
