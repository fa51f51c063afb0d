#!/usr/bin/env python3
"""Plaid API setup script.

Validates Plaid API credentials by creating a link token for the
``transactions`` product, then offers to store them (and the Supabase JWT
secret used to verify user sessions) in the OS keychain. Institution
linking happens in the browser through Plaid Link, not in this script.

Usage:
    1. Sign up at https://dashboard.plaid.com/
    2. Get your client_id and secret from the Keys page
    3. Run ``python -m scripts.setup_plaid`` from ``backend/``
    4. Add the printed env vars to your .env file, or store them in the keychain

Run with ``--remove`` to delete the stored credentials from the keychain.
"""

import argparse
import sys

from integrations.exceptions import ProviderError
from integrations.plaid_client import PlaidClient
from services.credential_manager import CREDENTIAL_KEYS, delete_credential, set_credential


def validate_credentials(client_id: str, secret: str, env: str) -> None:
    """Validate Plaid credentials by creating a test link token.

    Raises:
        ProviderError: If Plaid rejects the request.
    """
    client = PlaidClient(client_id=client_id, secret=secret, environment=env)
    link_token = client.create_link_token("setup-check")
    if not link_token:
        raise ProviderError("No link_token in response", provider_name="Plaid")


def _offer_keychain_store(credentials: dict[str, str]) -> None:
    """Prompt the user to store credentials in the OS keychain."""
    answer = input("\nStore these credentials in the keychain? [Y/n] ").strip().lower()
    if answer not in ("", "y", "yes"):
        print("  Skipped keychain storage.")
        return
    for key, value in credentials.items():
        if set_credential(key, value):
            print(f"  Stored {key} in keychain")
        else:
            print(f"  Failed to store {key}")


def remove_credentials() -> None:
    """Delete every stored Ledgerlink credential from the keychain."""
    for key in sorted(CREDENTIAL_KEYS):
        if delete_credential(key):
            print(f"  Removed {key} from keychain")
        else:
            print(f"  {key} not in keychain")


def main(argv: list[str] | None = None):
    """Prompt for credentials and validate them."""
    parser = argparse.ArgumentParser(description="Set up Plaid API credentials")
    parser.add_argument(
        "--remove",
        action="store_true",
        help="Delete stored credentials from the keychain and exit",
    )
    args = parser.parse_args(argv)

    if args.remove:
        remove_credentials()
        return

    print("Plaid API Setup")
    print("=" * 50)
    print()

    client_id = input("Enter your Plaid client_id: ").strip()
    if not client_id:
        print("Error: No client_id provided")
        sys.exit(1)

    secret = input("Enter your Plaid secret: ").strip()
    if not secret:
        print("Error: No secret provided")
        sys.exit(1)

    print()
    print("Choose environment:")
    print("  1. sandbox (for testing with fake data)")
    print("  2. production (for live use)")
    env_choice = input("Enter choice (1 or 2) [1]: ").strip() or "1"
    env = {"1": "sandbox", "2": "production"}.get(env_choice, "sandbox")

    print()
    print(f"Validating credentials against {env} environment...")

    try:
        validate_credentials(client_id, secret, env)
    except ProviderError as e:
        print(f"Error: {e}")
        print()
        print("Common issues:")
        print("  - Incorrect client_id or secret")
        print("  - Wrong environment selected")
        print("  - Network connectivity issue")
        sys.exit(1)

    credentials = {
        "PLAID_CLIENT_ID": client_id,
        "PLAID_SECRET": secret,
    }

    jwt_secret = input(
        "\nSupabase JWT secret (Project Settings > API, blank to skip): "
    ).strip()
    if jwt_secret:
        credentials["SUPABASE_JWT_SECRET"] = jwt_secret

    print()
    print("Success! Add the following to your .env file:")
    print()
    for key, value in credentials.items():
        print(f"{key}={value}")
    print(f"PLAID_ENVIRONMENT={env}")

    _offer_keychain_store(credentials)


if __name__ == "__main__":
    main()
