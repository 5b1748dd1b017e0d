#!/usr/bin/env python3
"""
Generate the Ed25519 key the mock backend signs session tokens with.

The key is written to config/keys. Without it the backend generates an
ephemeral key at startup, so every restart invalidates issued tokens.

Usage:
    python scripts/generate_keys.py
"""

import os
import sys
from pathlib import Path

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519


def generate_signing_key(output_dir: Path) -> tuple[str, str]:
    """
    Generate an Ed25519 key pair and save it to files.

    Returns:
        Tuple of (private_key_path, public_key_path)
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    private_key = ed25519.Ed25519PrivateKey.generate()

    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )

    private_path = output_dir / "session_signing.pem"
    public_path = output_dir / "session_signing.pub.pem"

    with open(private_path, "wb") as f:
        f.write(private_pem)
    os.chmod(private_path, 0o600)  # Restrict permissions

    with open(public_path, "wb") as f:
        f.write(public_pem)

    return str(private_path), str(public_path)


def main():
    project_root = Path(__file__).parent.parent
    keys_dir = project_root / "config" / "keys"

    print("=" * 60)
    print("Session Signing Key Generator")
    print("=" * 60)

    if (keys_dir / "session_signing.pem").exists():
        response = input("\nKey already exists. Overwrite? [y/N]: ")
        if response.lower() != "y":
            print("Aborted.")
            sys.exit(0)

    private_path, public_path = generate_signing_key(keys_dir)
    print(f"\nPrivate key: {private_path}")
    print(f"Public key:  {public_path}")

    print("\nThe mock backend reads the key from MOCK_BACKEND_SIGNING_KEY_PATH")
    print("(default: config/keys/session_signing.pem)")
    print("=" * 60)


if __name__ == "__main__":
    main()
