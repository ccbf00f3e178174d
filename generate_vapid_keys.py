"""
Generate a VAPID key pair for FlowMoney Web Push.

Run once:
    python generate_vapid_keys.py [mailto]

Paste the output into .env. The private key is printed as a single line
(PEM body without armor), which is what the push service expects.
"""
import base64
import sys

from py_vapid import Vapid


def application_server_key(vapid: Vapid) -> str:
    """URL-safe base64 of the uncompressed EC point, as browsers want it."""
    numbers = vapid.public_key.public_numbers()
    raw = b"\x04" + numbers.x.to_bytes(32, "big") + numbers.y.to_bytes(32, "big")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


def private_key_line(vapid: Vapid) -> str:
    pem = vapid.private_pem()
    if isinstance(pem, bytes):
        pem = pem.decode()
    return "".join(line.strip() for line in pem.splitlines() if line and not line.startswith("-----"))


def main(argv: list[str]) -> None:
    vapid = Vapid()
    vapid.generate_keys()

    mailto = argv[1] if len(argv) > 1 else "mailto:admin@flowmoney.app"
    print("Add these to your .env:\n")
    print(f"VAPID_PUBLIC_KEY={application_server_key(vapid)}")
    print(f"VAPID_PRIVATE_KEY={private_key_line(vapid)}")
    print(f"VAPID_MAILTO={mailto}")


if __name__ == "__main__":
    main(sys.argv)
