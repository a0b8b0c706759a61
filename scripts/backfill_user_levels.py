"""
Recompute the cached `users.level` column from `users.xp` in MySQL.

Reason:
- `level` is a cache of `level_from_experience(xp)`. Rows created before the xp
  columns existed (xp NULL) or edited by hand can disagree with it.

Each row is fixed with a guarded UPDATE (`WHERE id=%s AND xp <=> %s`), so a grant
that lands between the SELECT and the UPDATE is never overwritten; such rows are
skipped and already carry a fresh level from the reward engine.

Usage:
  python scripts/backfill_user_levels.py [--dry-run]
"""

import os
import sys

import pymysql

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from config import DB_CONFIG
from core.xp_levels import level_from_experience, normalize_experience


def plan_level_fixes(rows) -> list[tuple[int, int, int | None, int]]:
    """Return (new_level, new_xp, old_xp, user_id) for every row whose cache is stale."""
    fixes = []
    for row in rows:
        old_xp = row["xp"]
        xp = normalize_experience(old_xp)
        level = level_from_experience(xp)
        if row["level"] != level or old_xp != xp:
            fixes.append((level, xp, old_xp, int(row["id"])))
    return fixes


def main() -> None:
    dry_run = "--dry-run" in sys.argv[1:]
    conn = pymysql.connect(cursorclass=pymysql.cursors.DictCursor, **DB_CONFIG)
    try:
        with conn.cursor() as cursor:
            cursor.execute("SELECT id, xp, level FROM users")
            rows = cursor.fetchall()

        fixes = plan_level_fixes(rows)
        if not fixes:
            print(f"All {len(rows)} users already consistent.")
            return
        if dry_run:
            for level, xp, old_xp, user_id in fixes[:50]:
                print(f"user={user_id} xp={old_xp} -> xp={xp} level={level}")
            print(f"Dry run: {len(fixes)} of {len(rows)} users would be updated.")
            return

        updated = 0
        with conn.cursor() as cursor:
            for level, xp, old_xp, user_id in fixes:
                cursor.execute(
                    "UPDATE users SET level=%s, xp=%s WHERE id=%s AND xp <=> %s",
                    (level, xp, user_id, old_xp),
                )
                updated += cursor.rowcount
        conn.commit()
        print(f"Done. checked={len(rows)}, stale={len(fixes)}, updated={updated}, skipped={len(fixes) - updated}")
    finally:
        conn.close()


if __name__ == "__main__":
    main()
