"""Monitored packages repository - backing store of the device allowlist."""

from psycopg2.extensions import cursor as PgCursor


def list_active_packages(cur: PgCursor) -> list[str]:
    """Active package names, highest priority first."""
    cur.execute(
        """
        SELECT package_name FROM monitor_packages
        WHERE is_active = true
        ORDER BY priority DESC, package_name
        """
    )
    return [row[0] for row in cur.fetchall()]
