"""
Print a DASHBOARD_PASSWORD_HASH value for .env
Run:  python create_password_hash.py <password>
"""
import sys

from app.auth import hash_password

if len(sys.argv) != 2:
    print("Usage: python create_password_hash.py <password>")
    sys.exit(1)

print(f"DASHBOARD_PASSWORD_HASH={hash_password(sys.argv[1])}")
