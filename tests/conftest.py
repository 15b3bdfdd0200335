"""Required settings must exist before keygate.core.config is imported."""
import os

for name, value in (("TELEGRAM_BOT_TOKEN", "123456:TEST-TOKEN"), ("KEY_API_TOKEN", "test-api-key")):
    if not os.environ.get(name, "").strip():
        os.environ[name] = value
