"""
Seed the database with essential data (the first admin user).
"""

import subprocess
import os
import sys


def run_admin_script():
    """Ensure an admin user exists by running the create_admin module."""
    try:
        subprocess.run(
            [sys.executable, "-m", "flashquery.scripts.create_admin"],
            check=True,
            cwd=os.getcwd(),
            env={**os.environ, "PYTHONPATH": os.getcwd()}
        )
        print("Admin user ready.")
    except subprocess.CalledProcessError:
        print("Failed to create admin user. Check flashquery/scripts/create_admin.py.")
        sys.exit(1)


if __name__ == "__main__":
    run_admin_script()
