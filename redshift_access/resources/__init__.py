"""Lifecycle operations for Redshift access-control entities.

Each entity kind exposes create/read/(update)/delete against a
RedshiftConnection:
- Roles (CREATE/ALTER/DROP ROLE, verified through SVV_ROLES)
- Role grants to users, roles and groups (GRANT/REVOKE ROLE)
"""
