from __future__ import annotations

import os

from pastelink import create_app


def main() -> None:
    env = os.getenv("APP_ENV", "development")
    app = create_app(env)

    host = os.getenv("FLASK_RUN_HOST", "0.0.0.0")
    port = int(os.getenv("PORT") or os.getenv("FLASK_RUN_PORT", "3001"))

    app.run(host=host, port=port)


if __name__ == "__main__":
    main()
