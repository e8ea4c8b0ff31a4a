"""
CLI tool to provision and inspect TOTP credentials.
Usage: twofa-manage <command> [options]   (or: python -m cli.manage_totp from app/)

Commands:
    genkey   print a new shared secret
    url      print the otpauth:// URI for a secret, optionally writing the QR code
    code     print the current TOTP for a secret
    check    check a TOTP against a secret
    enroll   create a credential in the database
"""

import argparse
import asyncio
import os
import sys

from twofa import RawKey, check, gen_key, get, get_url, to_buffer


DEFAULT_ISSUER = os.getenv("TOTP_ISSUER", "twofa")


def write_qr(path: str, svg: str):
    with open(path, "w", encoding="utf-8") as f:
        f.write(svg)
    print(f"🖼️  QR code written to {path}")


def cmd_genkey(args) -> int:
    print(gen_key())
    return 0


def cmd_url(args) -> int:
    if to_buffer(args.secret) is None:
        print("❌ Error: secret is not valid base32")
        return 1
    provisioning = get_url(args.secret, args.issuer, args.label)
    print(provisioning.url)
    if args.qr_file:
        write_qr(args.qr_file, provisioning.qr)
    return 0


def cmd_code(args) -> int:
    key = to_buffer(args.secret)
    if key is None:
        print("❌ Error: secret is not valid base32")
        return 1
    print(get(RawKey(key), args.delta))
    return 0


def cmd_check(args) -> int:
    spent = args.spent or []
    if len(spent) < 2:
        print("❌ Error: pass the two most recently used codes with --spent (twice)")
        return 2
    result = check(args.secret, args.code, spent)
    if result.ok:
        print("✅ TOTP accepted")
        return 0
    print(f"❌ TOTP refused: {result.reason.value}")
    return 1


async def enroll(label: str, issuer: str, qr_file: str = None) -> bool:
    """
    Create a credential with a fresh secret and print its provisioning data.

    Args:
        label: Account name shown in the authenticator app
        issuer: Issuer shown in the authenticator app
        qr_file: Optional path for the QR code SVG
    """
    # imported here so the offline commands work without a database
    from database.models import get_session, Credentials
    from database.utils import create_tables, fetch_credential

    await create_tables()
    async with get_session() as session:
        if await fetch_credential(session, label):
            print(f"❌ Error: Credential with label '{label}' already exists!")
            return False

        secret = gen_key()
        session.add(Credentials(label=label, totp_secret=secret))
        await session.commit()

    provisioning = get_url(secret, issuer, label)

    print("\n" + "="*80)
    print("✅ TOTP credential enrolled successfully!")
    print("="*80)
    print(f"\n👤 Label: {label}")
    print(f"🏷️  Issuer: {issuer}")
    print(f"\n📱 TOTP Secret (for your authenticator app):\n")
    print(f"   {secret}")
    print(f"\n🔗 TOTP URI:\n")
    print(f"   {provisioning.url}")
    print("\n" + "="*80 + "\n")
    if qr_file:
        write_qr(qr_file, provisioning.qr)

    return True


def cmd_enroll(args) -> int:
    if not args.label.strip():
        print("❌ Error: Label must not be empty")
        return 1
    return 0 if asyncio.run(enroll(args.label, args.issuer, args.qr_file)) else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Provision and inspect TOTP credentials"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("genkey", help="Print a new base32 shared secret")
    p.set_defaults(func=cmd_genkey)

    p = sub.add_parser("url", help="Print the otpauth:// URI for a secret")
    p.add_argument("--secret", required=True, help="Base32 shared secret")
    p.add_argument("--label", required=True, help="Account name shown in the app")
    p.add_argument("--issuer", default=DEFAULT_ISSUER, help="Issuer shown in the app")
    p.add_argument("--qr-file", help="Write the QR code as SVG to this path")
    p.set_defaults(func=cmd_url)

    p = sub.add_parser("code", help="Print the current TOTP for a secret")
    p.add_argument("--secret", required=True, help="Base32 shared secret")
    p.add_argument("--delta", type=int, default=0, help="Period offset, e.g. -1 for the previous code")
    p.set_defaults(func=cmd_code)

    p = sub.add_parser("check", help="Check a TOTP against a secret")
    p.add_argument("--secret", required=True, help="Base32 shared secret")
    p.add_argument("--code", required=True, help="TOTP to check")
    p.add_argument("--spent", action="append", help="A recently used TOTP, give at least two")
    p.set_defaults(func=cmd_check)

    p = sub.add_parser("enroll", help="Create a credential in the database")
    p.add_argument("--label", required=True, help="Account name shown in the app")
    p.add_argument("--issuer", default=DEFAULT_ISSUER, help="Issuer shown in the app")
    p.add_argument("--qr-file", help="Write the QR code as SVG to this path")
    p.set_defaults(func=cmd_enroll)

    return parser


def main(argv=None):
    """Main entry point for the CLI tool."""
    args = build_parser().parse_args(argv)
    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
