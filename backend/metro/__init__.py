"""Metro package

Access to the external Metro database: configuration, per-environment
transactions, the lookup DAO, id allocation and shared error kinds.
"""
