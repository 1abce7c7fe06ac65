#!/usr/bin/env python3
"""
Diagnostic script to verify the goal checkout environment configuration.
Run this to check if your environment variables are properly set.

Usage:
    python check_config.py
"""

import os
import sys
from typing import List, Tuple

from dotenv import load_dotenv


def check_env_var(name: str, required: bool = True) -> Tuple[bool, str]:
    """Check if environment variable is set and return status."""
    value = os.getenv(name)
    if value:
        # Mask sensitive values
        if "KEY" in name or "SECRET" in name or "TOKEN" in name:
            masked = value[:8] + "..." if len(value) > 8 else "***"
            return True, f"✓ {name}: {masked}"
        return True, f"✓ {name}: {value}"
    status = "✗" if required else "○"
    return False, f"{status} {name}: NOT SET"


def collect_issues() -> List[str]:
    issues: List[str] = []

    print("Stripe Configuration:")
    print("-" * 40)
    ok, msg = check_env_var("STRIPE_SECRET_KEY", required=True)
    print(msg)
    if not ok:
        issues.append("Missing required variable: STRIPE_SECRET_KEY")
    else:
        key = os.getenv("STRIPE_SECRET_KEY", "")
        if not key.startswith(("sk_", "rk_")):
            print("  ⚠ STRIPE_SECRET_KEY should be a secret or restricted key (sk_/rk_)")
            issues.append("STRIPE_SECRET_KEY is not a secret key")
        else:
            print("  ✓ STRIPE_SECRET_KEY format looks correct")
    print()

    print("Goal Store Configuration:")
    print("-" * 40)
    convex_url = os.getenv("CONVEX_URL") or os.getenv("NEXT_PUBLIC_CONVEX_URL")
    for var in ["CONVEX_URL", "NEXT_PUBLIC_CONVEX_URL", "CONVEX_AUTH_TOKEN", "CONVEX_TIMEOUT_SECONDS"]:
        ok, msg = check_env_var(var, required=False)
        print(msg)
    if convex_url:
        if not convex_url.startswith("https://"):
            print("  ⚠ CONVEX_URL should start with 'https://'")
            issues.append("CONVEX_URL must be an https:// deployment URL")
        else:
            print("  ✓ Using Convex goal store")
    else:
        ok, msg = check_env_var("DATABASE_URL", required=False)
        print(msg)
        if not ok:
            print("  ℹ Using default SQLite database")
    print()

    print("Service Configuration:")
    print("-" * 40)
    for var in ["LOG_LEVEL", "CORS_ALLOW_ORIGINS"]:
        ok, msg = check_env_var(var, required=False)
        print(msg)
    print()

    return issues


def main() -> None:
    load_dotenv()

    print("=" * 60)
    print("Goal Checkout Configuration Check")
    print("=" * 60)
    print()

    issues = collect_issues()

    print("=" * 60)
    if issues:
        print("⚠ ISSUES FOUND:")
        for issue in issues:
            print(f"  - {issue}")
        print()
        print("Please fix these issues before deploying.")
        sys.exit(1)
    else:
        print("✓ Configuration looks good!")
        print()
        print("Next steps:")
        print("  1. For local development: uvicorn main:app --reload")
        print("  2. Check health endpoint: /api/health")
        sys.exit(0)


if __name__ == "__main__":
    main()
