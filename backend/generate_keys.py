"""Generate local secrets and write them into backend/.env.

TOKEN_ENCRYPTION_KEY is 32 random bytes, hex encoded (64 chars), which is
what `adpulse.security.derive_key` expects. A base64 encoding of the same
bytes works too.
"""

import os
import secrets

jwt_secret = secrets.token_urlsafe(32)
encryption_key = secrets.token_bytes(32).hex()

print(f"Generated JWT_SECRET: {jwt_secret}")
print(f"Generated TOKEN_ENCRYPTION_KEY: {encryption_key}")

template_path = ".env.template"
env_path = ".env"

if os.path.exists(template_path):
    with open(template_path, "r") as f:
        lines = f.read().splitlines()

    new_lines = []
    for line in lines:
        if line.startswith("JWT_SECRET="):
            new_lines.append(f"JWT_SECRET={jwt_secret}")
        elif line.startswith("TOKEN_ENCRYPTION_KEY="):
            new_lines.append(f"TOKEN_ENCRYPTION_KEY={encryption_key}")
        else:
            new_lines.append(line)

    with open(env_path, "w") as f:
        f.write("\n".join(new_lines) + "\n")

    print(f"Successfully wrote to {env_path}")
else:
    print(f"Error: {template_path} not found. Please ensure it exists.")
