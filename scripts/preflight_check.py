#!/usr/bin/env python3
import sys
import os

print("Running preflight import check...")
try:
    # Keep the bot offline; this only checks that configuration and imports load
    os.environ.setdefault("DISCORD_BOT_TOKEN", "")

    import selfgate.main
    print("Import selfgate.main: OK")

    from selfgate.settings import settings
    missing = [name for name in ("SELF_ENDPOINT", "SELF_VERIFIER_URL", "DISCORD_BOT_TOKEN",
                                 "DISCORD_GUILD_ID", "DISCORD_VERIFIED_ROLE_ID")
               if not getattr(settings, name)]
    for name in missing:
        print(f"[WARN] {name} is not set")
    if settings.DELIVERY_MODE not in ("qr", "link"):
        print(f"[WARN] DELIVERY_MODE={settings.DELIVERY_MODE!r} is not one of qr/link; QR will be skipped")

    print("Preflight check passed.")
    sys.exit(0)
except Exception as e:
    print(f"Preflight check FAILED: {e}")
    import traceback
    traceback.print_exc()
    sys.exit(1)
